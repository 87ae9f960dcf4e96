"""
Queue Engine - Tiered Continuum Inboxes
=========================================

Enqueue, tiered dequeue, depth, stats, heartbeat and discovery on top of
the continuum store.

Ordering:
  - FIFO within a tier (append at tail, pop from head)
  - Strict tier precedence on dequeue: Q0 > Q1 > Q2 > Q3

Concurrency:
  - No in-process locking. Each pop is one atomic store call, so two
    dequeuers never receive the same message, but a tier scan is a
    sequence of separate pops and may miss a higher-tier message that
    lands mid-scan.
  - Enqueue issues push, registry add, heartbeat and counter increment as
    independent calls; a crash between them leaves partial state.

Corrupt entries:
  - An element that does not decode to a JSON object is logged and
    dropped, and the scan continues in the same tier.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from mesh_inbox.core.config import Settings, settings
from mesh_inbox.core.continuum_store import ContinuumStats, ContinuumStore
from mesh_inbox.core.exceptions import InvalidFieldError
from mesh_inbox.core.types import TIERS, Tier
from mesh_inbox.infra.telemetry import get_logger
from mesh_inbox.models.envelope import MessageEnvelope, loads_strict

logger = get_logger(__name__)

def epoch_ms() -> int:
    return int(time.time() * 1000)

# ── Decode results ────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Decoded:
    envelope: dict[str, Any]

@dataclass(frozen=True, slots=True)
class Corrupt:
    raw: str
    error: str

DecodeResult = Decoded | Corrupt

def decode_envelope(raw: str) -> DecodeResult:
    """Decode one stored queue element."""
    try:
        value = loads_strict(raw)
    except (ValueError, TypeError) as exc:
        return Corrupt(raw=raw, error=str(exc))
    if not isinstance(value, dict):
        return Corrupt(raw=raw, error=f"expected object, got {type(value).__name__}")
    return Decoded(envelope=value)

# ── Results ───────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class DequeueResult:
    message: dict[str, Any] | None
    tier: Tier | None = None
    skipped: int = 0

    @property
    def empty(self) -> bool:
        return self.message is None

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "message": self.message, "empty": self.empty}

@dataclass(frozen=True, slots=True)
class DiscoveredContinuum:
    continuum_id: str
    stats: ContinuumStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "continuum_id": self.continuum_id,
            "status": self.stats.status,
            "last_heartbeat": self.stats.last_heartbeat,
            "messages_sent": self.stats.messages_sent,
            "messages_received": self.stats.messages_received,
        }

# ── Discovery window ──────────────────────────────────────────────

def resolve_window(raw: object, cfg: Settings | None = None) -> int:
    """
    Turn a requested discovery window into milliseconds.

    Missing, non-numeric, non-finite or non-positive values fall back to
    the configured default; anything else is clamped into [min, max].
    """
    cfg = cfg or settings
    default = cfg.DISCOVERY_WINDOW_MS
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if value != value or value in (float("inf"), float("-inf")) or value <= 0:
        return default
    return int(min(max(value, cfg.DISCOVERY_WINDOW_MIN_MS), cfg.DISCOVERY_WINDOW_MAX_MS))

# ── Engine ────────────────────────────────────────────────────────

class QueueEngine:
    """
    Tiered inbox operations for every continuum.

    Usage:
        engine = QueueEngine(ContinuumStore(get_storage()))
        receipt = await engine.send("Beta", "Alpha", {"code": 999}, Tier.Q0)
        result = await engine.dequeue("Beta")
    """

    def __init__(
        self,
        store: ContinuumStore,
        *,
        clock: Callable[[], int] = epoch_ms,
        config: Settings | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._config = config or settings

    @property
    def store(self) -> ContinuumStore:
        return self._store

    async def enqueue(self, target: str, tier: Tier, envelope: MessageEnvelope | dict[str, Any]) -> int:
        """Append ``envelope`` to the tail of ``target``'s ``tier`` queue.

        Returns the queue length after the push.

        Raises:
            InvalidFieldError: the envelope holds a non-finite float.
        """
        doc = envelope.to_dict() if isinstance(envelope, MessageEnvelope) else envelope
        try:
            raw = (
                envelope.encode()
                if isinstance(envelope, MessageEnvelope)
                else json.dumps(doc, ensure_ascii=False, allow_nan=False)
            )
        except ValueError as e:
            raise InvalidFieldError("payload", "must be standard JSON (no NaN or Infinity)") from e
        length = await self._store.push(target, tier, raw)
        await self._store.ensure_continuum(target, self._clock())
        await self._store.bump(target, "messages_received")
        logger.info(
            "message_enqueued",
            continuum_id=target,
            tier=str(tier),
            message_id=doc.get("message_id"),
            depth=length,
        )
        return length

    async def send(
        self,
        target: str,
        sender: str,
        payload: Any = None,
        tier: Tier = Tier.Q2,
    ) -> MessageEnvelope:
        """Build a fresh envelope and enqueue it."""
        envelope = MessageEnvelope.create(
            sender=sender,
            target=target,
            qos=tier,
            payload=payload,
            now_ms=self._clock(),
        )
        await self.enqueue(target, tier, envelope)
        return envelope

    async def dequeue(self, target: str) -> DequeueResult:
        """Pop the oldest message from the highest non-empty tier."""
        return await self._scan(target, TIERS)

    async def dequeue_priority_only(self, target: str) -> DequeueResult:
        """Pop from Q0 only; never falls through to lower tiers."""
        return await self._scan(target, (Tier.Q0,))

    async def _scan(self, target: str, tiers: tuple[Tier, ...]) -> DequeueResult:
        skipped = 0
        for tier in tiers:
            while True:
                raw = await self._store.pop(target, tier)
                if raw is None:
                    break
                result = decode_envelope(raw)
                if isinstance(result, Corrupt):
                    skipped += 1
                    logger.warning(
                        "corrupt_envelope_skipped",
                        continuum_id=target,
                        tier=str(tier),
                        error=result.error,
                        raw_preview=result.raw[:200],
                    )
                    continue
                await self._store.bump(target, "messages_sent")
                await self._store.ensure_continuum(target, self._clock())
                logger.info(
                    "message_dequeued",
                    continuum_id=target,
                    tier=str(tier),
                    message_id=result.envelope.get("message_id"),
                )
                return DequeueResult(message=result.envelope, tier=tier, skipped=skipped)
        return DequeueResult(message=None, skipped=skipped)

    async def depth(self, target: str) -> dict[str, int]:
        """Current length of every tier queue. Read-only."""
        lengths = await asyncio.gather(*(self._store.length(target, t) for t in TIERS))
        return {str(t): n for t, n in zip(TIERS, lengths, strict=True)}

    async def heartbeat(self, target: str) -> int:
        """Mark ``target`` live now. Returns the recorded heartbeat (epoch ms)."""
        now = self._clock()
        await self._store.ensure_continuum(target, now)
        logger.debug("heartbeat", continuum_id=target, at_ms=now)
        return now

    async def stats(self, target: str) -> ContinuumStats | None:
        return await self._store.read_stats(target)

    async def list_continuums(self) -> list[str]:
        return sorted(await self._store.members())

    async def discover(
        self,
        now_ms: int | None = None,
        window_ms: object = None,
    ) -> list[DiscoveredContinuum]:
        """Continuums whose last heartbeat is within the window of ``now_ms``.

        Members without a stats record are skipped. Most recent first.
        """
        now = self._clock() if now_ms is None else now_ms
        window = resolve_window(window_ms, self._config)
        members = sorted(await self._store.members())
        records = await asyncio.gather(*(self._store.read_stats(m) for m in members))

        live = [
            DiscoveredContinuum(continuum_id=cid, stats=rec)
            for cid, rec in zip(members, records, strict=True)
            if rec is not None and now - rec.last_heartbeat <= window
        ]
        live.sort(key=lambda d: d.stats.last_heartbeat, reverse=True)
        logger.debug(
            "discover_complete",
            window_ms=window,
            candidates=len(members),
            live=len(live),
        )
        return live
