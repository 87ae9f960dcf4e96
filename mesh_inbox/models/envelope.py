"""
Message Envelope (NME v3.0)
============================

The record written to a continuum queue. Producers other than this
service (the mesh router) write the same shape, so dequeue hands back the
stored JSON document untouched instead of re-hydrating this class.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from mesh_inbox.core.types import Tier

NME_VERSION = "3.0"

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")

def loads_strict(text: str | bytes) -> Any:
    """``json.loads`` that refuses ``NaN``, ``Infinity`` and ``-Infinity``.

    Raises:
        ValueError: malformed JSON or a non-standard constant.
    """
    return json.loads(text, parse_constant=_reject_constant)

def new_message_id(now_ms: int | None = None) -> str:
    """Time-prefixed id: ``msg_<epoch-ms>_<9 hex chars>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"msg_{now_ms}_{uuid.uuid4().hex[:9]}"

def iso_timestamp(now_ms: int | None = None) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    dt = datetime.fromtimestamp(now_ms / 1000, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """
    Immutable message record.

    ``payload`` is opaque: any JSON value, stored and returned as-is.
    """

    sender: str
    target: str
    qos: Tier
    payload: Any = field(default_factory=dict)
    message_id: str = field(default_factory=new_message_id)
    timestamp: str = field(default_factory=iso_timestamp)
    nme_version: str = NME_VERSION
    mode: str = "message"
    urgency: str = "normal"
    risk_level: str = "LOW"

    @classmethod
    def create(
        cls,
        *,
        sender: str,
        target: str,
        qos: Tier,
        payload: Any = None,
        now_ms: int | None = None,
    ) -> MessageEnvelope:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return cls(
            sender=sender,
            target=target,
            qos=qos,
            payload={} if payload is None else payload,
            message_id=new_message_id(now_ms),
            timestamp=iso_timestamp(now_ms),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["qos"] = str(self.qos)
        return {
            "nme_version": data["nme_version"],
            "message_id": data["message_id"],
            "sender": data["sender"],
            "target": data["target"],
            "timestamp": data["timestamp"],
            "mode": data["mode"],
            "urgency": data["urgency"],
            "qos": data["qos"],
            "risk_level": data["risk_level"],
            "payload": data["payload"],
        }

    def encode(self) -> str:
        """Stored form. Raises ValueError for non-finite floats in the payload."""
        return json.dumps(self.to_dict(), ensure_ascii=False, allow_nan=False)

    def receipt(self) -> dict[str, Any]:
        """Summary returned to the sender after a successful enqueue."""
        return {
            "target": self.target,
            "message_id": self.message_id,
            "qos": str(self.qos),
            "timestamp": self.timestamp,
        }
