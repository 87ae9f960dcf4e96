"""
Mesh Inbox Application
=======================

FastAPI app serving three request surfaces over one queue engine:
  - REST inbox routes under ``{API_V1_PREFIX}/inbox`` (plus path aliases)
  - NQP envelope and compact forms at ``/nqp``
  - the search-string DSL at ``/search``

Logging is configured during lifespan startup; the storage connection is
closed on shutdown.
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from mesh_inbox.core.config import settings
from mesh_inbox.core.storage import get_storage
from mesh_inbox.infra.telemetry import (
    clear_request_context,
    get_logger,
    set_request_context,
    setup_logging,
)

from .exception_handlers import register_exception_handlers
from .routes import router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging, pick the storage backend, close it on shutdown."""
    setup_logging(
        level=settings.LOG_LEVEL,
        json_output=settings.LOG_JSON,
        log_dir=settings.LOG_DIR,
    )
    storage = get_storage()
    await storage.initialize()
    logger.info(
        "service_started",
        environment=settings.ENVIRONMENT,
        storage_mode=storage.mode,
        redis=storage.is_redis,
    )

    yield

    logger.info("service_stopping")
    await storage.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Priority inboxes for mesh continuums, addressable over REST, NQP and search",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every log record of a request with its id; echo the id back."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:12]
    set_request_context(request_id=request_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


register_exception_handlers(app)

app.include_router(router)


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "mesh_inbox.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
