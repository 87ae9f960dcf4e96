"""
Canonical Commands
===================

The single shape every request surface is normalized into, and the one
place where fields are validated.

Surfaces (envelope, compact, DSL) only *locate* raw values through their
own alias tables; ``build_command`` then applies the shared rules:

  - tier: exact member of Q0..Q3, otherwise Q2
  - SEND needs target and sender
  - POLL / POLL_PRIORITY / REGISTER need the continuum id
  - DISCOVER takes an optional window, resolved later by the engine
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from mesh_inbox.core.config import settings
from mesh_inbox.core.exceptions import MissingFieldError
from mesh_inbox.core.types import DEFAULT_TIER, Operation, Tier, parse_tier

# ── Operation names ───────────────────────────────────────────────

# Every surface spelling, upper-cased, mapped onto the canonical set.
OPERATION_NAMES: dict[str, Operation] = {
    "MESH.DISPATCH": Operation.SEND,
    "MESH.SEND": Operation.SEND,
    "DISPATCH": Operation.SEND,
    "SEND": Operation.SEND,
    "MD": Operation.SEND,
    "MS": Operation.SEND,
    "MESH.POLL": Operation.POLL,
    "POLL": Operation.POLL,
    "MP": Operation.POLL,
    "MESH.POLL.PRIORITY": Operation.POLL_PRIORITY,
    "POLL_PRIORITY": Operation.POLL_PRIORITY,
    "MPP": Operation.POLL_PRIORITY,
    "NODE.REGISTER": Operation.REGISTER,
    "REGISTER": Operation.REGISTER,
    "NR": Operation.REGISTER,
    "MESH.DISCOVER": Operation.DISCOVER,
    "DISCOVER": Operation.DISCOVER,
    "MDI": Operation.DISCOVER,
    "SYS.HEALTH": Operation.HEALTH,
    "HEALTH": Operation.HEALTH,
    "SH": Operation.HEALTH,
}

# Names advertised back to clients that send something unknown.
SUPPORTED_OPERATIONS: tuple[str, ...] = (
    "MESH.DISPATCH",
    "MESH.SEND",
    "MESH.POLL",
    "MESH.POLL.PRIORITY",
    "NODE.REGISTER",
    "MESH.DISCOVER",
    "SYS.HEALTH",
)

def lookup_operation(name: str | None) -> Operation | None:
    if not isinstance(name, str):
        return None
    return OPERATION_NAMES.get(name.strip().upper())

# ── Alias resolution ──────────────────────────────────────────────

_ABSENT = object()

def resolve_alias(
    sources: Mapping[str, Mapping[str, Any]],
    candidates: Sequence[tuple[str, str]],
) -> Any:
    """First present value among ``(source, key)`` candidates, else None.

    ``None`` values count as absent; empty strings do not, so the shared
    validator can reject them with a proper message.
    """
    for source, key in candidates:
        value = sources.get(source, {}).get(key, _ABSENT)
        if value is not _ABSENT and value is not None:
            return value
    return None

def describe_aliases(candidates: Sequence[tuple[str, str]]) -> list[str]:
    return [f"{src}.{key}" if src else key for src, key in candidates]

# ── Parsed command values ─────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class CommandFields:
    target: str | None = None
    sender: str | None = None
    payload: Any = None
    tier: Tier = DEFAULT_TIER
    window_ms: Any = None

@dataclass(frozen=True, slots=True)
class Command:
    """A validated canonical command."""

    operation: Operation
    fields: CommandFields = field(default_factory=CommandFields)
    surface: str = "envelope"
    raw_operation: str = ""
    parameters: dict[str, str] = field(default_factory=dict)

@dataclass(frozen=True, slots=True)
class UnknownOperation:
    """Operation name outside the canonical set (not a parse error)."""

    raw_operation: str
    surface: str = "envelope"
    parameters: dict[str, str] = field(default_factory=dict)

ParsedCommand = Command | UnknownOperation

# ── Validation ────────────────────────────────────────────────────

_RECIPIENT_OPERATIONS = frozenset({Operation.POLL, Operation.POLL_PRIORITY, Operation.REGISTER})

def _require_str(value: Any, name: str, aliases: Sequence[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MissingFieldError(name, aliases)
    return value

def build_command(
    operation: Operation,
    *,
    target: Any = None,
    sender: Any = None,
    payload: Any = None,
    tier: Any = None,
    window_ms: Any = None,
    surface: str = "envelope",
    raw_operation: str = "",
    parameters: dict[str, str] | None = None,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> Command:
    """Validate raw surface values into a canonical :class:`Command`.

    Raises:
        MissingFieldError: a required field is absent or empty.
    """
    aliases = aliases or {}
    tier = parse_tier(tier, parse_tier(settings.DEFAULT_TIER))
    fields = CommandFields(tier=tier)

    if operation == Operation.SEND:
        fields = CommandFields(
            target=_require_str(target, "target", aliases.get("target", ())),
            sender=_require_str(sender, "sender", aliases.get("sender", ())),
            payload={} if payload is None else payload,
            tier=tier,
        )
    elif operation in _RECIPIENT_OPERATIONS:
        fields = CommandFields(
            target=_require_str(target, "continuum_id", aliases.get("target", ())),
            tier=tier,
        )
    elif operation == Operation.DISCOVER:
        fields = CommandFields(window_ms=window_ms)

    return Command(
        operation=operation,
        fields=fields,
        surface=surface,
        raw_operation=raw_operation or operation.value,
        parameters=dict(parameters or {}),
    )
