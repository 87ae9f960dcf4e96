"""
Compact Surface
================

Query-string commands for clients that can only issue a GET:

    /nqp?c=MD&to=Beta&from=Alpha&pl=%7B%22text%22%3A%22hi%22%7D&qos=Q1
    /nqp?c=MP&id=Beta

``pl`` is tried as URL-encoded JSON first; anything that does not decode
as standard JSON (``NaN`` and ``Infinity`` included) is kept as plain text
under ``{"text": ...}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote

from mesh_inbox.core.exceptions import MissingFieldError
from mesh_inbox.core.types import Operation
from mesh_inbox.models.envelope import loads_strict

from .canonical import (
    ParsedCommand,
    UnknownOperation,
    build_command,
    describe_aliases,
    lookup_operation,
    resolve_alias,
)

SURFACE = "compact"

_ALIASES: dict[str, list[tuple[str, str]]] = {
    "code": [("", "c"), ("", "code")],
    "target": [("", "to"), ("", "target")],
    "sender": [("", "from"), ("", "sender")],
    "payload": [("", "pl"), ("", "payload"), ("", "message")],
    "tier": [("", "qos")],
    "recipient": [("", "id"), ("", "continuum_id"), ("", "to"), ("", "target")],
    "window": [("", "timeoutMs"), ("", "timeoutms"), ("", "t")],
}

def decode_compact_payload(pl: str | None) -> Any:
    """URL-decode then JSON-decode ``pl``; fall back to a text payload."""
    if pl is None or pl == "":
        return {}
    try:
        return loads_strict(unquote(pl, errors="strict"))
    except ValueError:
        return {"text": pl}

def parse_compact(query: Mapping[str, str]) -> ParsedCommand:
    """Normalize compact query parameters into a canonical command.

    Raises:
        MissingFieldError: no operation code, or a required field is absent.
    """
    sources = {"": query}
    code = resolve_alias(sources, _ALIASES["code"])
    if not isinstance(code, str) or not code.strip():
        raise MissingFieldError("c", describe_aliases(_ALIASES["code"]))

    raw_op = code.strip().upper()
    operation = lookup_operation(raw_op)
    if operation is None:
        return UnknownOperation(raw_operation=raw_op, surface=SURFACE)

    tier = resolve_alias(sources, _ALIASES["tier"])

    if operation == Operation.SEND:
        return build_command(
            operation,
            target=resolve_alias(sources, _ALIASES["target"]),
            sender=resolve_alias(sources, _ALIASES["sender"]),
            payload=decode_compact_payload(resolve_alias(sources, _ALIASES["payload"])),
            tier=tier,
            surface=SURFACE,
            raw_operation=raw_op,
            aliases={
                "target": describe_aliases(_ALIASES["target"]),
                "sender": describe_aliases(_ALIASES["sender"]),
            },
        )

    return build_command(
        operation,
        target=resolve_alias(sources, _ALIASES["recipient"]),
        tier=tier,
        window_ms=resolve_alias(sources, _ALIASES["window"]),
        surface=SURFACE,
        raw_operation=raw_op,
        aliases={"target": describe_aliases(_ALIASES["recipient"])},
    )
