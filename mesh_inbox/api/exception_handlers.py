"""
Exception Handlers
===================

Maps the exception hierarchy onto HTTP responses:
  - MeshInboxException -> its own status code, ``{success: false, error, ...}``
  - anything else      -> 500 with a generic message, logged with traceback
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mesh_inbox.core.exceptions import MeshInboxException
from mesh_inbox.infra.telemetry import get_logger

logger = get_logger(__name__)


async def exception_handler(request: Request, exc: MeshInboxException) -> JSONResponse:
    """Handle known inbox errors."""
    if exc.status_code >= 500:
        logger.error("request_failed", error_code=exc.error_code, path=request.url.path, detail=exc.detail)
    else:
        logger.info("command_rejected", error_code=exc.error_code, path=request.url.path, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler; never leaks internals to the client."""
    logger.error("unhandled_exception", exc=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MeshInboxException, exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
