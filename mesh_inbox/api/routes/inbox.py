"""
Inbox REST Routes
==================

Endpoints (under ``{API_V1_PREFIX}/inbox``):
- POST /send                    - enqueue a message
- GET  /continuums              - every known continuum id
- GET  /discover                - continuums with a recent heartbeat
- POST /register                - heartbeat by body ``continuumId``
- GET  /register/{continuum_id} - heartbeat by path
- GET  /{continuum_id}          - dequeue next message (Q0 > Q1 > Q2 > Q3)
- GET  /{continuum_id}/priority - dequeue from Q0 only
- GET  /{continuum_id}/depth    - per-tier queue length
- GET  /{continuum_id}/stats    - counters and heartbeat

Writes and reads go through the same canonical commands as /nqp and
/search; depth, stats and the id listing are direct engine reads.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from mesh_inbox.api.deps import get_executor
from mesh_inbox.api.presentation import render
from mesh_inbox.core.types import Operation
from mesh_inbox.services.commands import CommandExecutor, build_command

router = APIRouter(tags=["inbox"])

_SEND_ALIASES = {"target": ["target"], "sender": ["sender"]}
_RECIPIENT_ALIASES = {"target": ["continuumId", "continuum_id"]}


class SendRequest(BaseModel):
    """Body of ``POST /send``. Validation happens in the canonical builder."""

    model_config = ConfigDict(extra="ignore")

    target: Any = None
    sender: Any = None
    payload: Any = None
    qos: Any = None


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    continuum_id_camel: Any = Field(default=None, alias="continuumId")
    continuum_id: Any = None

    @property
    def resolved(self) -> Any:
        return self.continuum_id_camel if self.continuum_id_camel is not None else self.continuum_id


@router.post("/send")
async def send_message(
    body: SendRequest,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    """Enqueue one message. Non-object payloads are replaced by ``{}``."""
    payload = body.payload if isinstance(body.payload, dict) else {}
    command = build_command(
        Operation.SEND,
        target=body.target,
        sender=body.sender,
        payload=payload,
        tier=body.qos,
        surface="rest",
        aliases=_SEND_ALIASES,
    )
    result = await executor.execute(command)
    return render(request, "Send", result.data)


@router.get("/continuums")
async def list_continuums(
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    ids = await executor.engine.list_continuums()
    return render(request, "Continuums", {"success": True, "continuums": ids, "total": len(ids)})


@router.get("/discover")
async def discover(
    request: Request,
    timeout_ms: str | None = Query(default=None, alias="timeoutMs"),
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    command = build_command(Operation.DISCOVER, window_ms=timeout_ms, surface="rest")
    result = await executor.execute(command)
    return render(request, "Discover", result.data)


@router.post("/register")
async def register_body(
    body: RegisterRequest,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    command = build_command(
        Operation.REGISTER, target=body.resolved, surface="rest", aliases=_RECIPIENT_ALIASES
    )
    result = await executor.execute(command)
    return render(request, "Register", result.data)


@router.get("/register/{continuum_id}")
async def register_path(
    continuum_id: str,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    command = build_command(Operation.REGISTER, target=continuum_id, surface="rest")
    result = await executor.execute(command)
    return render(request, "Register", result.data)


@router.get("/{continuum_id}")
async def poll(
    continuum_id: str,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    command = build_command(Operation.POLL, target=continuum_id, surface="rest")
    result = await executor.execute(command)
    return render(request, "Poll", result.data)


@router.get("/{continuum_id}/priority")
async def poll_priority(
    continuum_id: str,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    command = build_command(Operation.POLL_PRIORITY, target=continuum_id, surface="rest")
    result = await executor.execute(command)
    return render(request, "Poll priority", result.data)


@router.get("/{continuum_id}/depth")
async def depth(
    continuum_id: str,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    counts = await executor.engine.depth(continuum_id)
    return render(request, "Depth", {"success": True, "continuumId": continuum_id, "depth": counts})


@router.get("/{continuum_id}/stats")
async def stats(
    continuum_id: str,
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    record = await executor.engine.stats(continuum_id)
    return render(
        request,
        "Stats",
        {
            "success": True,
            "continuumId": continuum_id,
            "stats": record.to_dict() if record else None,
        },
    )


# ── Path aliases kept for clients with hard-coded URLs ─────────────

alias_router = APIRouter(tags=["aliases"])

alias_router.add_api_route("/register/{continuum_id}", register_path, methods=["GET"])
alias_router.add_api_route("/discover", discover, methods=["GET"])
alias_router.add_api_route("/priority/{continuum_id}", poll_priority, methods=["GET"])
alias_router.add_api_route("/poll/{continuum_id}", poll, methods=["GET"])
