"""
Search Route
=============

``GET /search?q=...`` executes a command written in the search DSL and
answers with HTML (the JSON embedded in a ``<pre>``) unless
``format=json`` is given. Strings that are not commands get a help
document describing the syntax.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from mesh_inbox.api.deps import get_executor
from mesh_inbox.api.presentation import render
from mesh_inbox.core.config import settings
from mesh_inbox.core.exceptions import MeshInboxException
from mesh_inbox.infra.telemetry import get_logger, set_request_context
from mesh_inbox.services.commands import (
    SUPPORTED_OPERATIONS,
    CommandExecutor,
    UnknownOperation,
    to_command,
    tokenize_search,
)

logger = get_logger(__name__)

router = APIRouter(tags=["search"])

RESPONSE_TYPE = "NQP-SEARCH-COMMAND-RESPONSE"

HELP = {
    "type": "NQP-SEARCH-RESPONSE",
    "message": 'Use search query: mesh-inbox "operation" "parameters"',
    "operations": [
        "MESH.DISPATCH / MESH.SEND - write: to: target from: sender message: text [qos: Q0|Q1|Q2|Q3]",
        "MESH.POLL - read next: continuum_id: id",
        "MESH.POLL.PRIORITY - read Q0 only: continuum_id: id",
        "NODE.REGISTER - register: continuum_id: id",
        "MESH.DISCOVER - list continuums [timeoutMs: N]",
        "SYS.HEALTH - health",
    ],
    "example": 'mesh-inbox "inbox" "MESH.DISPATCH" "to:Aureon_Primus from:Aureon_Claude message:Hello"',
}


@router.get("/search")
async def search(
    request: Request,
    q: str | None = Query(default=None),
    query: str | None = Query(default=None),
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    set_request_context(surface="search")
    raw_query = q if q is not None else (query or "")

    tokens = tokenize_search(raw_query)
    if tokens is None:
        return render(
            request,
            "Search command syntax",
            {**HELP, "service": settings.APP_NAME},
            html_default=True,
        )

    base: dict[str, Any] = {
        "type": RESPONSE_TYPE,
        "command": tokens.operation,
        "query": raw_query,
        "parsed": tokens.to_dict(),
    }
    status_code = 200

    try:
        parsed = to_command(tokens)
        if isinstance(parsed, UnknownOperation):
            result = {
                **base,
                "status": "unknown_operation",
                "message": f"Unknown operation: {parsed.raw_operation}",
                "supported": list(SUPPORTED_OPERATIONS),
            }
        else:
            outcome = await executor.execute(parsed)
            failed = outcome.data.get("success") is False
            result = {
                **base,
                "status": "error" if failed else "executed",
                "message": outcome.summary,
                "data": outcome.data,
            }
    except MeshInboxException as exc:
        logger.info("search_command_failed", command=tokens.operation, error_code=exc.error_code)
        status_code = exc.status_code
        result = {**base, "status": "error", "message": exc.detail, "error_code": exc.error_code}

    return render(
        request,
        f"{tokens.operation} – result",
        result,
        status_code=status_code,
        html_default=True,
    )
