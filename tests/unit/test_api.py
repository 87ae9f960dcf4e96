"""
HTTP API - Unit Tests
======================

Exercises every request surface through the FastAPI app with the
executor swapped for one over an in-memory store.
"""

import json

import pytest

from mesh_inbox.api.presentation import extract_embedded
from mesh_inbox.core.exceptions import StorageError
from mesh_inbox.core.storage import MemoryBackend

INBOX = "/api/v1/inbox"


class TestServiceRoutes:

    def test_root_lists_endpoints(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["service"] == "Mesh Inbox API"
        assert body["endpoints"]["nqp"] == "/nqp"

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["redis"] == "disconnected"
        assert resp.json()["storage"] == "MemoryBackend"

    def test_request_id_is_echoed(self, client):
        assert client.get("/health", headers={"X-Request-ID": "abc123"}).headers["X-Request-ID"] == "abc123"
        assert client.get("/health").headers["X-Request-ID"]

    def test_health_as_html(self, client):
        resp = client.get("/health", params={"format": "html"})
        assert resp.headers["content-type"].startswith("text/html")
        assert extract_embedded(resp.text)["status"] == "ok"


class TestInboxRoutes:

    def test_send_then_poll(self, client):
        resp = client.post(
            f"{INBOX}/send",
            json={"target": "Beta", "sender": "Alpha", "payload": {"text": "hi"}, "qos": "Q1"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "ENQUEUED"

        polled = client.get(f"{INBOX}/Beta").json()
        assert polled["empty"] is False
        assert polled["message"]["payload"] == {"text": "hi"}
        assert polled["message"]["qos"] == "Q1"

    def test_send_missing_target(self, client):
        resp = client.post(f"{INBOX}/send", json={"sender": "Alpha"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error_code"] == "MISSING_FIELD"
        assert "target" in body["error"]

    def test_non_object_payload_becomes_empty(self, client):
        client.post(f"{INBOX}/send", json={"target": "Beta", "sender": "Alpha", "payload": "text"})
        assert client.get(f"{INBOX}/Beta").json()["message"]["payload"] == {}

    def test_priority_route(self, client):
        client.post(f"{INBOX}/send", json={"target": "Beta", "sender": "A", "qos": "Q2"})
        assert client.get(f"{INBOX}/Beta/priority").json()["empty"] is True
        client.post(f"{INBOX}/send", json={"target": "Beta", "sender": "A", "qos": "Q0"})
        assert client.get(f"{INBOX}/Beta/priority").json()["message"]["qos"] == "Q0"

    def test_depth_and_stats(self, client):
        client.post(f"{INBOX}/send", json={"target": "Beta", "sender": "A", "qos": "Q3"})
        depth = client.get(f"{INBOX}/Beta/depth").json()
        assert depth["depth"] == {"Q0": 0, "Q1": 0, "Q2": 0, "Q3": 1}

        stats = client.get(f"{INBOX}/Beta/stats").json()
        assert stats["stats"]["messages_received"] == 1
        assert client.get(f"{INBOX}/Ghost/stats").json()["stats"] is None

    def test_register_and_discover(self, client):
        assert client.post(f"{INBOX}/register", json={"continuumId": "Gamma"}).status_code == 200
        assert client.get(f"{INBOX}/register/Delta").json()["status"] == "registered"

        found = client.get(f"{INBOX}/discover", params={"timeoutMs": "5000"}).json()
        assert found["total"] == 2
        assert found["timeoutMs"] == 5000
        assert {c["continuum_id"] for c in found["continuums"]} == {"Gamma", "Delta"}

        assert client.get(f"{INBOX}/continuums").json()["continuums"] == ["Delta", "Gamma"]

    def test_register_requires_id(self, client):
        assert client.post(f"{INBOX}/register", json={}).status_code == 400

    def test_path_aliases(self, client):
        client.get("/register/Gamma")
        assert client.get("/discover").json()["total"] == 1
        client.post(f"{INBOX}/send", json={"target": "Gamma", "sender": "A", "qos": "Q0"})
        assert client.get("/priority/Gamma").json()["empty"] is False
        assert client.get("/poll/Gamma").json()["empty"] is True


class TestNqpRoutes:

    def test_envelope_dispatch_and_poll(self, client):
        resp = client.post(
            "/nqp",
            json={
                "os_cmd": "MESH.DISPATCH",
                "os_args": {"to": "Beta", "message": {"code": 999}},
                "meta": {"continuum_id": "Alpha", "qos": "Q0"},
            },
        )
        assert resp.status_code == 200
        assert resp.json()["os_cmd"] == "MESH.DISPATCH"

        polled = client.post("/nqp", json={"packet_in": {"os_cmd": "MESH.POLL.PRIORITY", "meta": {"continuum_id": "Beta"}}})
        assert polled.json()["message"]["payload"] == {"code": 999}
        assert polled.json()["message"]["sender"] == "Alpha"

    def test_envelope_unknown_operation(self, client):
        resp = client.post("/nqp", json={"os_cmd": "MESH.EXPLODE"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error_code"] == "UNSUPPORTED_OPERATION"
        assert "MESH.DISPATCH" in body["supported"]

    def test_envelope_invalid_json(self, client):
        resp = client.post("/nqp", content=b"{not json", headers={"content-type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_JSON"

    def test_compact_dispatch_and_poll(self, client):
        pl = json.dumps({"text": "compact"})
        resp = client.get("/nqp", params={"c": "MD", "to": "Beta", "from": "Alpha", "pl": pl})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ENQUEUED"

        polled = client.get("/nqp", params={"c": "MP", "id": "Beta"}).json()
        assert polled["message"]["payload"] == {"text": "compact"}

    def test_compact_unknown_code(self, client):
        resp = client.get("/nqp", params={"c": "ZZ"})
        assert resp.status_code == 400
        assert "MD" in resp.json()["supported"]

    def test_compact_missing_code(self, client):
        assert client.get("/nqp").status_code == 400

    def test_compact_html(self, client):
        resp = client.get("/nqp", params={"c": "SH", "format": "html"})
        assert extract_embedded(resp.text)["status"] == "ok"


class TestSearchRoute:

    def test_help_when_not_a_command(self, client):
        resp = client.get("/search", params={"q": "weather tomorrow"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert extract_embedded(resp.text)["type"] == "NQP-SEARCH-RESPONSE"

    def test_dispatch_then_poll(self, client):
        q = 'mesh-inbox "inbox" "MESH.DISPATCH" "to:Beta from:Alpha message:Hello there"'
        sent = extract_embedded(client.get("/search", params={"q": q}).text)
        assert sent["type"] == "NQP-SEARCH-COMMAND-RESPONSE"
        assert sent["status"] == "executed"
        assert sent["message"] == "Message sent to Beta"

        resp = client.get(
            "/search",
            params={"query": 'mesh-inbox "MESH.POLL" "continuum_id:Beta"', "format": "json"},
        )
        polled = resp.json()
        assert polled["data"]["message"]["payload"] == {"text": "Hello there"}
        assert polled["parsed"]["parameters"] == {"continuum_id": "Beta"}

    def test_unknown_operation(self, client):
        resp = client.get("/search", params={"q": 'mesh-inbox "MESH.EXPLODE" "id:Beta"', "format": "json"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "unknown_operation"
        assert "MESH.POLL" in resp.json()["supported"]

    def test_missing_field(self, client):
        resp = client.get("/search", params={"q": 'mesh-inbox "MESH.DISPATCH" "to:Beta"', "format": "json"})
        assert resp.status_code == 400
        assert resp.json()["status"] == "error"
        assert resp.json()["error_code"] == "MISSING_FIELD"


class TestNonStandardJson:

    def test_rest_send_rejects_nan_payload(self, client):
        resp = client.post(
            f"{INBOX}/send",
            content=b'{"target": "Beta", "sender": "Alpha", "payload": {"x": NaN}}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_FIELD"
        assert client.get(f"{INBOX}/Beta/depth").json()["depth"]["Q2"] == 0

    def test_envelope_rejects_nan(self, client):
        resp = client.post(
            "/nqp",
            content=b'{"os_cmd": "MESH.DISPATCH", "os_args": {"to": "Beta", "message": NaN},'
            b' "meta": {"continuum_id": "Alpha"}}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_JSON"

    def test_compact_infinity_is_text_and_pollable(self, client):
        sent = client.get("/nqp", params={"c": "MD", "to": "Beta", "from": "Alpha", "pl": "Infinity"})
        assert sent.status_code == 200

        polled = client.get("/nqp", params={"c": "MP", "id": "Beta"})
        assert polled.status_code == 200
        assert polled.json()["message"]["payload"] == {"text": "Infinity"}


class TestIdentifiers:

    def test_whitespace_is_kept(self, client):
        client.post(f"{INBOX}/send", json={"target": " Beta ", "sender": "Alpha", "qos": "Q0"})
        assert client.get(f"{INBOX}/continuums").json()["continuums"] == [" Beta "]
        assert client.get(f"{INBOX}/Beta/depth").json()["depth"]["Q0"] == 0


class RefusingBackend(MemoryBackend):
    """Every call fails the way an unreachable Redis does."""

    async def _refuse(self, op: str, *args, **kwargs):
        raise StorageError(op, ConnectionError("Connection refused"))

    async def rpush(self, key, *values):
        return await self._refuse("RPUSH")

    async def lpop(self, key):
        return await self._refuse("LPOP")

    async def llen(self, key):
        return await self._refuse("LLEN")

    async def hgetall(self, name):
        return await self._refuse("HGETALL")

    async def hset(self, name, mapping):
        return await self._refuse("HSET")

    async def hincrby(self, name, key, amount=1):
        return await self._refuse("HINCRBY")

    async def sadd(self, key, *members):
        return await self._refuse("SADD")

    async def smembers(self, key):
        return await self._refuse("SMEMBERS")

    async def ping(self):
        return await self._refuse("PING")


class TestStoreUnavailable:

    @pytest.fixture
    def backend(self):
        return RefusingBackend()

    def test_send_is_503(self, client):
        resp = client.post(f"{INBOX}/send", json={"target": "Beta", "sender": "Alpha"})
        assert resp.status_code == 503
        body = resp.json()
        assert body["success"] is False
        assert body["error_code"] == "STORAGE_UNAVAILABLE"

    @pytest.mark.parametrize("path", [f"{INBOX}/Beta", f"{INBOX}/register/Gamma", f"{INBOX}/discover"])
    def test_reads_and_heartbeats_are_503(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 503
        assert resp.json()["error_code"] == "STORAGE_UNAVAILABLE"

    def test_health_degrades_instead_of_failing(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["redis"] == "error"
        assert "refused" in body["redisError"]
