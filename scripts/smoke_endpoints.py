#!/usr/bin/env python3
"""
Live smoke test against a running Mesh Inbox deployment.

Checks response bodies and data flow, not just HTTP 200.

Usage:
    python scripts/smoke_endpoints.py [base_url]

``MESH_INBOX_URL`` overrides the default base URL.
"""

import argparse
import json
import os
import sys
import time

import httpx

from mesh_inbox.api.presentation import extract_embedded

DEFAULT_BASE = "http://localhost:3002"
INBOX = "/api/v1/inbox"


class Smoke:
    def __init__(self, client: httpx.Client):
        self.client = client
        self.passed = 0
        self.failed = 0

    def ok(self, name: str, condition: bool, detail: str = "") -> None:
        if condition:
            self.passed += 1
            print(f"  ✓ {name} {detail}".rstrip())
        else:
            self.failed += 1
            print(f"  ✗ {name} {detail}".rstrip())

    def get(self, path: str, **params):
        resp = self.client.get(path, params=params or None)
        try:
            return resp.status_code, resp.json()
        except json.JSONDecodeError:
            return resp.status_code, None

    def get_html(self, path: str, **params):
        resp = self.client.get(path, params=params or None)
        try:
            return resp.status_code, extract_embedded(resp.text)
        except ValueError:
            return resp.status_code, None

    def post(self, path: str, data: dict):
        resp = self.client.post(path, json=data)
        try:
            return resp.status_code, resp.json()
        except json.JSONDecodeError:
            return resp.status_code, None


def run(base: str) -> int:
    run_id = int(time.time() * 1000)
    alpha = f"TestContinuum_Alpha_{run_id}"
    beta = f"TestContinuum_Beta_{run_id}"

    print(f"\nMesh Inbox smoke test\nBase: {base}\n")
    with httpx.Client(base_url=base, timeout=15.0) as client:
        s = Smoke(client)

        print("1. Health")
        status, body = s.get("/health")
        s.ok("health status 200", status == 200)
        s.ok("health body.status", bool(body) and body.get("status") in ("ok", "degraded"))
        s.ok("health body.redis", bool(body) and isinstance(body.get("redis"), str))

        print("2. Register + discover")
        status, body = s.post(f"{INBOX}/register", {"continuumId": beta})
        s.ok("register status 200", status == 200)
        status, body = s.get(f"{INBOX}/discover")
        ids = [c["continuum_id"] for c in (body or {}).get("continuums", [])]
        s.ok("discover lists registered continuum", beta in ids)

        print("3. REST send + priority order")
        s.post(f"{INBOX}/send", {"target": beta, "sender": alpha, "payload": {"text": "routine"}, "qos": "Q2"})
        s.post(f"{INBOX}/send", {"target": beta, "sender": alpha, "payload": {"code": 999}, "qos": "Q0"})
        status, body = s.get(f"{INBOX}/{beta}/depth")
        s.ok("depth Q0=1 Q2=1", bool(body) and body["depth"]["Q0"] == 1 and body["depth"]["Q2"] == 1)
        status, body = s.get(f"{INBOX}/{beta}")
        s.ok("Q0 read first", bool(body) and (body.get("message") or {}).get("payload") == {"code": 999})
        status, body = s.get(f"{INBOX}/{beta}")
        s.ok("Q2 read second", bool(body) and (body.get("message") or {}).get("payload") == {"text": "routine"})
        status, body = s.get(f"{INBOX}/{beta}")
        s.ok("inbox empty", bool(body) and body.get("empty") is True)

        print("4. NQP envelope")
        status, body = s.post(
            "/nqp",
            {
                "os_cmd": "MESH.DISPATCH",
                "os_args": {"to": beta, "message": {"text": "envelope"}},
                "meta": {"continuum_id": alpha, "qos": "Q1"},
            },
        )
        s.ok("envelope dispatch", status == 200 and bool(body) and body.get("status") == "ENQUEUED")
        status, body = s.post("/nqp", {"os_cmd": "MESH.POLL", "os_args": {"continuum_id": beta}})
        s.ok("envelope poll", bool(body) and (body.get("message") or {}).get("payload") == {"text": "envelope"})

        print("5. NQP compact")
        status, body = s.get("/nqp", c="MD", to=beta, **{"from": alpha}, pl="compact text")
        s.ok("compact dispatch", status == 200)
        status, body = s.get("/nqp", c="MP", id=beta)
        s.ok("compact poll", bool(body) and (body.get("message") or {}).get("payload") == {"text": "compact text"})

        print("6. Search DSL")
        q = f'mesh-inbox "inbox" "MESH.DISPATCH" "to:{beta} from:{alpha} message:Hello there"'
        status, body = s.get_html("/search", q=q)
        s.ok("search dispatch executed", bool(body) and body.get("status") == "executed")
        status, body = s.get_html("/search", q=f'mesh-inbox "MESH.POLL" "continuum_id:{beta}"')
        message = ((body or {}).get("data") or {}).get("message") or {}
        s.ok("search poll", message.get("payload") == {"text": "Hello there"})

        print(f"\nPassed: {s.passed}  Failed: {s.failed}")
        return 0 if s.failed == 0 else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke-test a Mesh Inbox deployment")
    parser.add_argument("base_url", nargs="?", default=None)
    args = parser.parse_args()
    base = os.getenv("MESH_INBOX_URL") or args.base_url or DEFAULT_BASE
    sys.exit(run(base.rstrip("/")))


if __name__ == "__main__":
    main()
