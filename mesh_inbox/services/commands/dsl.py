"""
Search DSL
===========

Commands smuggled through a web-search string, for clients whose only
outbound tool is ``web_search()``:

    mesh-inbox "MESH.POLL" "continuum_id:Beta"
    mesh-inbox "inbox" "MESH.DISPATCH" "to:Beta from:Alpha message:Hello there"

Grammar:
  - The string must mention an address token (``mesh-inbox`` ...),
    case-insensitively, or it is not a command at all.
  - Double-quoted segments are extracted in order and trimmed.
    Three or more: operation = 2nd, parameters = 3rd.
    Exactly two:   operation = 1st, parameters = 2nd.
    Fewer:         not a command.
  - Parameters are ``key:value`` pairs; a value runs until the next
    ``key:`` or the end of the string and may contain spaces.
  - A non-empty parameter string without any ``key:value`` pair is taken
    as a bare continuum id.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from mesh_inbox.core.config import settings
from mesh_inbox.core.types import Operation

from .canonical import (
    ParsedCommand,
    UnknownOperation,
    build_command,
    describe_aliases,
    lookup_operation,
    resolve_alias,
)

SURFACE = "search"
FALLBACK_KEY = "continuum_id"

# key:value, value lazily extended over whitespace-separated words that
# contain no colon, stopping before the next "key:" or at end of input.
_PARAM_RE = re.compile(r"([A-Za-z0-9_]+):([^\s]+(?:\s+[^\s:]+)*?)(?=\s+[A-Za-z0-9_]+:|\s*$)")

@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Tokenized search string, before operation lookup."""

    operation: str
    parameters: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"operation": self.operation, "parameters": dict(self.parameters)}

def extract_quoted(text: str) -> list[str]:
    """``'"a" x "b "'`` -> ``['a', 'b']``. An unpaired quote ends extraction."""
    out: list[str] = []
    i = 0
    while True:
        start = text.find('"', i)
        if start == -1:
            break
        end = text.find('"', start + 1)
        if end == -1:
            break
        out.append(text[start + 1 : end].strip())
        i = end + 1
    return out

def parse_parameters(param_str: str) -> dict[str, str]:
    params: dict[str, str] = {}
    for m in _PARAM_RE.finditer(param_str):
        params[m.group(1)] = m.group(2).strip()
    if not params and param_str.strip():
        params[FALLBACK_KEY] = param_str.strip()
    return params

def has_address_token(text: str, tokens: Iterable[str] | None = None) -> bool:
    lower = text.lower()
    tokens = settings.SEARCH_ADDRESS_TOKENS if tokens is None else tokens
    return any(t.lower() in lower for t in tokens)

def tokenize_search(query: str | None, tokens: Iterable[str] | None = None) -> SearchQuery | None:
    """Split a search string into operation + parameters.

    Returns None when the string is not addressed to this inbox or has
    fewer than two quoted segments.
    """
    if not query or not isinstance(query, str):
        return None
    q = query.strip()
    if not has_address_token(q, tokens):
        return None
    parts = extract_quoted(q)
    if len(parts) < 2:
        return None
    if len(parts) >= 3:
        operation, param_str = parts[1], parts[2]
    else:
        operation, param_str = parts[0], parts[1]
    return SearchQuery(operation=operation.upper(), parameters=parse_parameters(param_str))

# ── Parameter names -> canonical fields ──────────────────────────

_PARAM_ALIASES: dict[str, list[tuple[str, str]]] = {
    "target": [("", "to"), ("", "target")],
    "sender": [("", "from"), ("", "sender")],
    "recipient": [("", "continuum_id"), ("", "id"), ("", "target"), ("", "to")],
    "message": [("", "message")],
    "tier": [("", "qos")],
    "window": [("", "timeoutMs"), ("", "timeoutms")],
}

def to_command(parsed: SearchQuery) -> ParsedCommand:
    """Map a tokenized search onto the canonical command set.

    Raises:
        MissingFieldError: a required parameter is absent.
    """
    operation = lookup_operation(parsed.operation)
    params: Mapping[str, str] = parsed.parameters
    if operation is None:
        return UnknownOperation(
            raw_operation=parsed.operation,
            surface=SURFACE,
            parameters=dict(params),
        )

    sources = {"": params}
    tier = resolve_alias(sources, _PARAM_ALIASES["tier"])

    if operation == Operation.SEND:
        message = resolve_alias(sources, _PARAM_ALIASES["message"])
        return build_command(
            operation,
            target=resolve_alias(sources, _PARAM_ALIASES["target"]),
            sender=resolve_alias(sources, _PARAM_ALIASES["sender"]),
            payload={"text": message if message is not None else ""},
            tier=tier,
            surface=SURFACE,
            raw_operation=parsed.operation,
            parameters=dict(params),
            aliases={
                "target": [f"{k}:" for k in describe_aliases(_PARAM_ALIASES["target"])],
                "sender": [f"{k}:" for k in describe_aliases(_PARAM_ALIASES["sender"])],
            },
        )

    return build_command(
        operation,
        target=resolve_alias(sources, _PARAM_ALIASES["recipient"]),
        tier=tier,
        window_ms=resolve_alias(sources, _PARAM_ALIASES["window"]),
        surface=SURFACE,
        raw_operation=parsed.operation,
        parameters=dict(params),
        aliases={"target": [f"{k}:" for k in describe_aliases(_PARAM_ALIASES["recipient"])]},
    )

def parse_search(query: str | None, tokens: Iterable[str] | None = None) -> ParsedCommand | None:
    """Tokenize and normalize in one step. None means not-a-command."""
    parsed = tokenize_search(query, tokens)
    if parsed is None:
        return None
    return to_command(parsed)
