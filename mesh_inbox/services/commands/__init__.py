"""
Command Normalizer
===================

Three request surfaces, one canonical command set:

- envelope: structured NQP packets (``POST /nqp``)
- compact:  query-string codes (``GET /nqp?c=MD&...``)
- search:   free-text DSL (``GET /search?q=mesh-inbox "..." "..."``)

Each adapter yields a ``ParsedCommand`` (``Command`` or
``UnknownOperation``); ``CommandExecutor`` runs the former.
"""

from .canonical import (
    OPERATION_NAMES,
    SUPPORTED_OPERATIONS,
    Command,
    CommandFields,
    ParsedCommand,
    UnknownOperation,
    build_command,
    lookup_operation,
    resolve_alias,
)
from .compact import decode_compact_payload, parse_compact
from .dsl import SearchQuery, parse_search, to_command, tokenize_search
from .envelope import parse_envelope
from .executor import CommandExecutor, CommandResult

__all__ = [
    "OPERATION_NAMES",
    "SUPPORTED_OPERATIONS",
    "Command",
    "CommandExecutor",
    "CommandFields",
    "CommandResult",
    "ParsedCommand",
    "SearchQuery",
    "UnknownOperation",
    "build_command",
    "decode_compact_payload",
    "lookup_operation",
    "parse_compact",
    "parse_envelope",
    "parse_search",
    "resolve_alias",
    "to_command",
    "tokenize_search",
]
