"""Service info and health check endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from mesh_inbox.api.deps import get_executor
from mesh_inbox.api.presentation import render
from mesh_inbox.core.config import settings
from mesh_inbox.core.types import Operation
from mesh_inbox.models.envelope import iso_timestamp
from mesh_inbox.services.commands import CommandExecutor, build_command

router = APIRouter(tags=["health"])


@router.get("/")
async def root(request: Request) -> Response:
    """Service description and endpoint map."""
    inbox = f"{settings.API_V1_PREFIX}/inbox"
    return render(
        request,
        "Service",
        {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "online",
            "description": "Continuum inboxes on the mesh Redis (queue:{continuumId}:{qos})",
            "endpoints": {
                "health": "/health",
                "send": f"{inbox}/send",
                "continuums": f"{inbox}/continuums",
                "discover": f"{inbox}/discover",
                "register": f"{inbox}/register/:continuumId",
                "inbox": f"{inbox}/:continuumId",
                "priority": f"{inbox}/:continuumId/priority",
                "depth": f"{inbox}/:continuumId/depth",
                "stats": f"{inbox}/:continuumId/stats",
                "nqp": "/nqp",
                "search": "/search?q=",
            },
            "timestamp": iso_timestamp(),
        },
    )


@router.get("/health")
async def health_check(
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    """Store reachability. A dead store degrades the result, never fails it."""
    result = await executor.execute(build_command(Operation.HEALTH, surface="rest"))
    return render(request, "Health", result.data)
