"""
Continuum Store
================

Key layout shared with the mesh router, plus the get-or-create accessor
through which continuums come into existence.

Keys:
  queue:{continuum_id}:{tier}   list of JSON envelopes, FIFO
  stats:{continuum_id}          hash: messages_sent, messages_received,
                                last_heartbeat (epoch ms), status
  continuums:set                set of every continuum ever seen
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mesh_inbox.core.types import Tier

if TYPE_CHECKING:
    from mesh_inbox.core.storage import HybridStorage, StorageBackend

STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"

class MeshKeys:
    """Key derivation for the mesh Redis layout."""

    REGISTRY = "continuums:set"

    @staticmethod
    def queue(continuum_id: str, tier: Tier | str) -> str:
        return f"queue:{continuum_id}:{tier}"

    @staticmethod
    def stats(continuum_id: str) -> str:
        return f"stats:{continuum_id}"

@dataclass(frozen=True, slots=True)
class ContinuumStats:
    """Parsed view of a ``stats:{id}`` hash."""

    messages_sent: int
    messages_received: int
    last_heartbeat: int
    status: str

    @classmethod
    def from_hash(cls, raw: dict[str, str]) -> ContinuumStats:
        return cls(
            messages_sent=_as_int(raw.get("messages_sent")),
            messages_received=_as_int(raw.get("messages_received")),
            last_heartbeat=_as_int(raw.get("last_heartbeat")),
            status=raw.get("status") or STATUS_OFFLINE,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages_sent": self.messages_sent,
            "messages_received": self.messages_received,
            "last_heartbeat": self.last_heartbeat,
            "status": self.status,
        }

def _as_int(value: str | None) -> int:
    # 0 when missing or unparseable
    if not value:
        return 0
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0

class ContinuumStore:
    """Storage-boundary operations on continuums.

    Every call maps onto exactly one backing-store primitive except
    ``ensure_continuum``, which issues the registry add and the heartbeat
    write as two independent calls.
    """

    def __init__(self, backend: StorageBackend | HybridStorage):
        self._backend = backend

    @property
    def backend(self) -> StorageBackend | HybridStorage:
        return self._backend

    async def ensure_continuum(self, continuum_id: str, now_ms: int) -> None:
        """Get-or-create: register the id and mark it online at ``now_ms``."""
        await self._backend.sadd(MeshKeys.REGISTRY, continuum_id)
        await self._backend.hset(
            MeshKeys.stats(continuum_id),
            {"last_heartbeat": str(now_ms), "status": STATUS_ONLINE},
        )

    async def push(self, continuum_id: str, tier: Tier, raw: str) -> int:
        return await self._backend.rpush(MeshKeys.queue(continuum_id, tier), raw)

    async def pop(self, continuum_id: str, tier: Tier) -> str | None:
        return await self._backend.lpop(MeshKeys.queue(continuum_id, tier))

    async def length(self, continuum_id: str, tier: Tier) -> int:
        return await self._backend.llen(MeshKeys.queue(continuum_id, tier))

    async def bump(self, continuum_id: str, counter: str) -> int:
        return await self._backend.hincrby(MeshKeys.stats(continuum_id), counter, 1)

    async def read_stats(self, continuum_id: str) -> ContinuumStats | None:
        raw = await self._backend.hgetall(MeshKeys.stats(continuum_id))
        if not raw:
            return None
        return ContinuumStats.from_hash(raw)

    async def members(self) -> set[str]:
        return await self._backend.smembers(MeshKeys.REGISTRY)

    async def ping(self) -> bool:
        return await self._backend.ping()
