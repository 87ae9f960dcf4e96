"""
Queue Engine - Unit Tests
==========================

Covers tier precedence, FIFO order, counters, heartbeats, discovery
windows and corrupt-entry handling, all over the in-memory backend.
"""

import json

import pytest

from mesh_inbox.core.config import Settings
from mesh_inbox.core.exceptions import InvalidFieldError
from mesh_inbox.core.types import Tier, parse_tier
from mesh_inbox.services.queue_engine import (
    Corrupt,
    Decoded,
    QueueEngine,
    decode_envelope,
    resolve_window,
)


class TestTiers:

    def test_exact_names_only(self):
        assert parse_tier("Q0") == Tier.Q0
        assert parse_tier("Q3") == Tier.Q3
        assert parse_tier("q0") == Tier.Q2
        assert parse_tier("Q9") == Tier.Q2
        assert parse_tier(None) == Tier.Q2
        assert parse_tier(0) == Tier.Q2


class TestEnqueueDequeue:

    @pytest.mark.asyncio
    async def test_round_trip_preserves_envelope(self, engine):
        env = await engine.send("Beta", "Alpha", {"text": "hi", "n": [1, 2]}, Tier.Q1)
        result = await engine.dequeue("Beta")

        assert not result.empty
        assert result.tier == Tier.Q1
        assert result.message == env.to_dict()
        assert result.message["payload"] == {"text": "hi", "n": [1, 2]}
        assert result.message["nme_version"] == "3.0"

    @pytest.mark.asyncio
    async def test_higher_tier_wins_regardless_of_arrival(self, engine):
        await engine.send("Beta", "Alpha", {"n": "low"}, Tier.Q2)
        await engine.send("Beta", "Alpha", {"n": "high"}, Tier.Q0)

        first = await engine.dequeue("Beta")
        second = await engine.dequeue("Beta")
        third = await engine.dequeue("Beta")

        assert first.message["payload"] == {"n": "high"}
        assert second.message["payload"] == {"n": "low"}
        assert third.empty

    @pytest.mark.asyncio
    async def test_fifo_within_tier(self, engine):
        for i in range(3):
            await engine.send("Beta", "Alpha", {"i": i}, Tier.Q3)
        order = [(await engine.dequeue("Beta")).message["payload"]["i"] for _ in range(3)]
        assert order == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_priority_only_never_falls_through(self, engine):
        await engine.send("Beta", "Alpha", {"n": 1}, Tier.Q1)
        result = await engine.dequeue_priority_only("Beta")
        assert result.empty
        assert (await engine.depth("Beta"))["Q1"] == 1

    @pytest.mark.asyncio
    async def test_dequeue_unknown_continuum_is_empty(self, engine):
        result = await engine.dequeue("Nobody")
        assert result.empty
        assert result.to_dict() == {"success": True, "message": None, "empty": True}

    @pytest.mark.asyncio
    async def test_enqueue_returns_depth(self, engine):
        env = await engine.send("Beta", "Alpha", {}, Tier.Q0)
        assert await engine.enqueue("Beta", Tier.Q0, env) == 2

    @pytest.mark.asyncio
    async def test_non_finite_payload_is_rejected_before_push(self, engine):
        with pytest.raises(InvalidFieldError) as exc:
            await engine.send("Beta", "Alpha", {"x": float("nan")}, Tier.Q0)
        assert exc.value.error_code == "INVALID_FIELD"
        assert await engine.depth("Beta") == {"Q0": 0, "Q1": 0, "Q2": 0, "Q3": 0}
        assert await engine.stats("Beta") is None


class TestDepthAndStats:

    @pytest.mark.asyncio
    async def test_depth_reports_every_tier(self, engine):
        await engine.send("Beta", "Alpha", {}, Tier.Q0)
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        assert await engine.depth("Beta") == {"Q0": 1, "Q1": 0, "Q2": 2, "Q3": 0}

    @pytest.mark.asyncio
    async def test_depth_does_not_create_continuum(self, engine):
        await engine.depth("Ghost")
        assert await engine.list_continuums() == []
        assert await engine.stats("Ghost") is None

    @pytest.mark.asyncio
    async def test_depth_tracks_sends_minus_reads(self, engine):
        for tier in (Tier.Q0, Tier.Q1, Tier.Q1, Tier.Q3):
            await engine.send("Beta", "Alpha", {}, tier)
        await engine.dequeue("Beta")
        await engine.dequeue("Beta")
        assert sum((await engine.depth("Beta")).values()) == 2

    @pytest.mark.asyncio
    async def test_counters(self, engine):
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        await engine.dequeue("Beta")

        stats = await engine.stats("Beta")
        assert stats.messages_received == 2
        assert stats.messages_sent == 1
        assert stats.status == "online"

    @pytest.mark.asyncio
    async def test_sender_is_not_registered(self, engine):
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        assert await engine.list_continuums() == ["Beta"]


class TestCorruptEntries:

    def test_decode_rejects_non_objects(self):
        assert isinstance(decode_envelope('{"a": 1}'), Decoded)
        assert isinstance(decode_envelope("not json"), Corrupt)
        assert isinstance(decode_envelope("[1, 2]"), Corrupt)
        assert isinstance(decode_envelope('"str"'), Corrupt)
        assert isinstance(decode_envelope('{"a": NaN}'), Corrupt)
        assert isinstance(decode_envelope('{"a": -Infinity}'), Corrupt)

    @pytest.mark.asyncio
    async def test_corrupt_head_is_skipped_within_tier(self, engine, store):
        await store.push("Beta", Tier.Q0, "{broken")
        await store.push("Beta", Tier.Q0, json.dumps({"message_id": "ok"}))
        await engine.send("Beta", "Alpha", {"n": "lower"}, Tier.Q1)

        result = await engine.dequeue("Beta")

        assert result.message == {"message_id": "ok"}
        assert result.tier == Tier.Q0
        assert result.skipped == 1
        assert await engine.depth("Beta") == {"Q0": 0, "Q1": 1, "Q2": 0, "Q3": 0}

    @pytest.mark.asyncio
    async def test_only_corrupt_entries_yield_empty(self, engine, store):
        await store.push("Beta", Tier.Q2, "garbage")
        result = await engine.dequeue("Beta")
        assert result.empty
        assert result.skipped == 1
        assert (await engine.depth("Beta"))["Q2"] == 0


class TestDiscovery:

    def test_resolve_window(self):
        cfg = Settings(
            DISCOVERY_WINDOW_MS=60_000,
            DISCOVERY_WINDOW_MIN_MS=1_000,
            DISCOVERY_WINDOW_MAX_MS=300_000,
        )
        assert resolve_window(None, cfg) == 60_000
        assert resolve_window("abc", cfg) == 60_000
        assert resolve_window(0, cfg) == 60_000
        assert resolve_window(-5, cfg) == 60_000
        assert resolve_window(True, cfg) == 60_000
        assert resolve_window("5000", cfg) == 5_000
        assert resolve_window(10, cfg) == 1_000
        assert resolve_window(10**9, cfg) == 300_000

    @pytest.mark.asyncio
    async def test_window_boundary_is_inclusive(self, engine, clock):
        await engine.heartbeat("Beta")
        assert [c.continuum_id for c in await engine.discover(now_ms=clock.now + 60_000)] == ["Beta"]
        assert await engine.discover(now_ms=clock.now + 60_001) == []

    @pytest.mark.asyncio
    async def test_custom_window(self, engine, clock):
        await engine.heartbeat("Beta")
        clock.advance(3_000)
        assert await engine.discover(window_ms=2_000) == []
        assert len(await engine.discover(window_ms=5_000)) == 1

    @pytest.mark.asyncio
    async def test_most_recent_first(self, engine, clock):
        await engine.heartbeat("Alpha")
        clock.advance(10)
        await engine.heartbeat("Gamma")
        clock.advance(10)
        await engine.heartbeat("Beta")

        live = await engine.discover()
        assert [c.continuum_id for c in live] == ["Beta", "Gamma", "Alpha"]
        assert live[0].to_dict()["status"] == "online"

    @pytest.mark.asyncio
    async def test_member_without_record_is_skipped(self, engine, backend):
        await backend.sadd("continuums:set", "Orphan")
        await engine.heartbeat("Beta")
        assert [c.continuum_id for c in await engine.discover()] == ["Beta"]

    @pytest.mark.asyncio
    async def test_dequeue_refreshes_heartbeat(self, engine, clock):
        await engine.send("Beta", "Alpha", {}, Tier.Q2)
        clock.advance(120_000)
        assert await engine.discover() == []

        await engine.dequeue("Beta")
        assert [c.continuum_id for c in await engine.discover()] == ["Beta"]


class TestScenarios:

    @pytest.mark.asyncio
    async def test_beta_receives_urgent_before_routine(self, engine):
        await engine.send("Beta", "Alpha", {"text": "routine"}, Tier.Q2)
        await engine.send("Beta", "Alpha", {"code": 999}, Tier.Q0)

        assert (await engine.dequeue_priority_only("Beta")).message["payload"] == {"code": 999}
        assert (await engine.dequeue_priority_only("Beta")).empty
        assert (await engine.dequeue("Beta")).message["payload"] == {"text": "routine"}

    @pytest.mark.asyncio
    async def test_gamma_registers_then_expires(self, engine, clock):
        at = await engine.heartbeat("Gamma")
        assert at == clock.now
        assert [c.continuum_id for c in await engine.discover()] == ["Gamma"]

        clock.advance(61_000)
        assert await engine.discover() == []
        assert await engine.list_continuums() == ["Gamma"]

    @pytest.mark.asyncio
    async def test_engines_share_state_through_store(self, store, clock):
        writer = QueueEngine(store, clock=clock)
        reader = QueueEngine(store, clock=clock)
        await writer.send("Beta", "Alpha", {"n": 1}, Tier.Q1)
        assert (await reader.dequeue("Beta")).message["payload"] == {"n": 1}
