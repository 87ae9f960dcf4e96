"""
Shared API Dependencies
========================

Lazy singletons wired from the configured storage. Routes take them via
``Depends`` so tests can swap in an in-memory engine through
``app.dependency_overrides``.
"""

from mesh_inbox.core.continuum_store import ContinuumStore
from mesh_inbox.core.storage import get_storage
from mesh_inbox.services.commands import CommandExecutor
from mesh_inbox.services.queue_engine import QueueEngine

__all__ = [
    "get_executor",
    "get_queue_engine",
]

_engine: QueueEngine | None = None
_executor: CommandExecutor | None = None


def get_queue_engine() -> QueueEngine:
    """Queue engine singleton over the shared storage."""
    global _engine
    if _engine is None:
        _engine = QueueEngine(ContinuumStore(get_storage()))
    return _engine


def get_executor() -> CommandExecutor:
    """Command executor singleton (lazy-loaded)."""
    global _executor
    if _executor is None:
        _executor = CommandExecutor(get_queue_engine())
    return _executor
