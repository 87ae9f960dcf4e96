"""
Envelope Surface
=================

Structured NQP packets, as posted to ``POST /nqp``:

    {"os_cmd": "MESH.DISPATCH",
     "os_args": {"to": "Beta", "message": {...}},
     "meta": {"continuum_id": "Alpha", "qos": "Q1"}}

or the same packet nested under ``packet_in``. Several historical field
names exist for each logical field; the tables below list them in
precedence order.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mesh_inbox.core.exceptions import InvalidFieldError, MissingFieldError
from mesh_inbox.core.types import Operation

from .canonical import (
    ParsedCommand,
    UnknownOperation,
    build_command,
    describe_aliases,
    lookup_operation,
    resolve_alias,
)

SURFACE = "envelope"

_SEND_ALIASES: dict[str, list[tuple[str, str]]] = {
    "target": [("os_args", "target"), ("os_args", "to")],
    "sender": [
        ("meta", "continuum_id"),
        ("meta", "continuumId"),
        ("meta", "sender"),
        ("os_args", "from"),
        ("os_args", "sender"),
    ],
    "payload": [("os_args", "message"), ("os_args", "payload"), ("os_args", "pl")],
    "tier": [("meta", "qos"), ("os_args", "qos")],
}

# The reader is the continuum itself, so meta.continuum_id names the
# recipient here rather than the sender.
_RECIPIENT_ALIASES: list[tuple[str, str]] = [
    ("os_args", "continuum_id"),
    ("os_args", "continuumId"),
    ("os_args", "id"),
    ("os_args", "target"),
    ("meta", "continuum_id"),
    ("meta", "continuumId"),
]

_WINDOW_ALIASES: list[tuple[str, str]] = [
    ("os_args", "timeoutMs"),
    ("os_args", "timeoutms"),
    ("os_args", "timeout_ms"),
]

def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidFieldError(name, "expected an object")
    return value

def unwrap_packet(body: Any) -> tuple[str | None, Mapping[str, Any], Mapping[str, Any]]:
    """Return ``(os_cmd, os_args, meta)`` from a request body."""
    body = _mapping(body, "body")
    packet = _mapping(body.get("packet_in", body), "packet_in")
    os_cmd = packet.get("os_cmd")
    if os_cmd is None:
        os_cmd = packet.get("osCmd")
    os_args = packet.get("os_args")
    if os_args is None:
        os_args = packet.get("osArgs")
    return os_cmd, _mapping(os_args, "os_args"), _mapping(packet.get("meta"), "meta")

def parse_envelope(body: Any) -> ParsedCommand:
    """Normalize an NQP envelope into a canonical command.

    Raises:
        MissingFieldError: no ``os_cmd``, or a required field is absent.
        InvalidFieldError: a section of the packet is not an object.
    """
    os_cmd, os_args, meta = unwrap_packet(body)
    if not isinstance(os_cmd, str) or not os_cmd.strip():
        raise MissingFieldError("os_cmd", ["os_cmd", "osCmd", "packet_in.os_cmd"])

    raw_op = os_cmd.strip().upper()
    operation = lookup_operation(raw_op)
    if operation is None:
        return UnknownOperation(raw_operation=raw_op, surface=SURFACE)

    sources = {"os_args": os_args, "meta": meta}

    if operation == Operation.SEND:
        return build_command(
            operation,
            target=resolve_alias(sources, _SEND_ALIASES["target"]),
            sender=resolve_alias(sources, _SEND_ALIASES["sender"]),
            payload=resolve_alias(sources, _SEND_ALIASES["payload"]),
            tier=resolve_alias(sources, _SEND_ALIASES["tier"]),
            surface=SURFACE,
            raw_operation=raw_op,
            aliases={k: describe_aliases(v) for k, v in _SEND_ALIASES.items()},
        )

    return build_command(
        operation,
        target=resolve_alias(sources, _RECIPIENT_ALIASES),
        tier=resolve_alias(sources, _SEND_ALIASES["tier"]),
        window_ms=resolve_alias(sources, _WINDOW_ALIASES),
        surface=SURFACE,
        raw_operation=raw_op,
        aliases={"target": describe_aliases(_RECIPIENT_ALIASES)},
    )
