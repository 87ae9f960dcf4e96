"""
Telemetry Layer
================

Structured logging with request-scoped context.

Usage:
    from mesh_inbox.infra.telemetry import get_logger

    logger = get_logger(__name__)
    logger.info("message_enqueued", continuum_id="Beta", tier="Q0")
"""

from mesh_inbox.infra.telemetry.logger import (
    StructuredLogger,
    clear_request_context,
    get_logger,
    set_request_context,
    setup_logging,
)

__all__ = [
    "StructuredLogger",
    "clear_request_context",
    "get_logger",
    "set_request_context",
    "setup_logging",
]
