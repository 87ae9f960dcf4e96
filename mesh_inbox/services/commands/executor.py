"""
Command Executor
=================

Runs any canonical :class:`Command` against the queue engine. All three
request surfaces end up here, so result shapes are identical no matter
how the command arrived.

Storage failures propagate as :class:`StorageError` for every operation
except HEALTH, which folds them into a degraded result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mesh_inbox.core.config import Settings, settings
from mesh_inbox.core.types import Operation
from mesh_inbox.infra.health import HealthChecker, HealthStatus, storage_check
from mesh_inbox.infra.telemetry import get_logger, set_request_context
from mesh_inbox.models.envelope import iso_timestamp
from mesh_inbox.services.queue_engine import QueueEngine, resolve_window

from .canonical import Command

logger = get_logger(__name__)

@dataclass(frozen=True, slots=True)
class CommandResult:
    operation: Operation
    data: dict[str, Any]
    summary: str

class CommandExecutor:
    """Dispatch table from canonical operation to engine call."""

    def __init__(
        self,
        engine: QueueEngine,
        *,
        health: HealthChecker | None = None,
        config: Settings | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or settings
        if health is None:
            health = HealthChecker()
            health.register("storage", storage_check(engine.store))
        self._health = health
        self._handlers = {
            Operation.SEND: self._send,
            Operation.POLL: self._poll,
            Operation.POLL_PRIORITY: self._poll_priority,
            Operation.REGISTER: self._register,
            Operation.DISCOVER: self._discover,
            Operation.HEALTH: self._health_check,
        }

    @property
    def engine(self) -> QueueEngine:
        return self._engine

    async def execute(self, command: Command) -> CommandResult:
        set_request_context(continuum_id=command.fields.target, surface=command.surface)
        logger.debug(
            "command_dispatch",
            operation=command.operation.value,
            raw_operation=command.raw_operation,
        )
        return await self._handlers[command.operation](command)

    async def _send(self, command: Command) -> CommandResult:
        f = command.fields
        envelope = await self._engine.send(f.target, f.sender, f.payload, f.tier)
        return CommandResult(
            operation=Operation.SEND,
            data={"success": True, "status": "ENQUEUED", "data": envelope.receipt()},
            summary=f"Message sent to {f.target}",
        )

    async def _poll(self, command: Command) -> CommandResult:
        result = await self._engine.dequeue(command.fields.target)
        return CommandResult(
            operation=Operation.POLL,
            data=result.to_dict(),
            summary="No message" if result.empty else "Message read",
        )

    async def _poll_priority(self, command: Command) -> CommandResult:
        result = await self._engine.dequeue_priority_only(command.fields.target)
        return CommandResult(
            operation=Operation.POLL_PRIORITY,
            data=result.to_dict(),
            summary="No Q0 message" if result.empty else "Q0 message read",
        )

    async def _register(self, command: Command) -> CommandResult:
        cid = command.fields.target
        at_ms = await self._engine.heartbeat(cid)
        window = self._config.DISCOVERY_WINDOW_MS
        return CommandResult(
            operation=Operation.REGISTER,
            data={
                "success": True,
                "continuumId": cid,
                "status": "registered",
                "registeredAt": iso_timestamp(at_ms),
                "discoverableForMs": window,
                "note": (
                    f"{cid} stays discoverable for {window // 1000}s after its "
                    "last heartbeat; register or poll again to stay listed"
                ),
            },
            summary=f"Registered {cid}",
        )

    async def _discover(self, command: Command) -> CommandResult:
        window = resolve_window(command.fields.window_ms, self._config)
        live = await self._engine.discover(window_ms=window)
        return CommandResult(
            operation=Operation.DISCOVER,
            data={
                "success": True,
                "continuums": [c.to_dict() for c in live],
                "total": len(live),
                "timeoutMs": window,
            },
            summary=f"Found {len(live)} continuums",
        )

    async def _health_check(self, command: Command) -> CommandResult:
        health = await self._health.check()
        storage = health.get("storage")
        backend = storage.details.get("backend") if storage else None
        if storage is not None and storage.status != HealthStatus.HEALTHY:
            redis_status, redis_error = "error", storage.message or None
        elif backend == "RedisBackend":
            redis_status, redis_error = "connected", None
        else:
            redis_status, redis_error = "disconnected", None
        ok = health.status == HealthStatus.HEALTHY
        return CommandResult(
            operation=Operation.HEALTH,
            data={
                "status": "ok" if ok else "degraded",
                "service": self._config.APP_NAME,
                "redis": redis_status,
                "redisError": redis_error,
                "storage": backend,
                "timestamp": iso_timestamp(),
            },
            summary="OK" if ok else "Degraded",
        )
