"""
NQP Routes
===========

- POST /nqp - structured envelope ``{os_cmd, os_args, meta}`` (or wrapped
  in ``packet_in``)
- GET  /nqp - compact query form, e.g. ``?c=MD&to=&from=&pl=``

Both accept every canonical operation. Unknown operations answer 400
with the supported list.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from mesh_inbox.api.deps import get_executor
from mesh_inbox.api.presentation import render
from mesh_inbox.core.exceptions import ClientError, UnsupportedOperationError
from mesh_inbox.infra.telemetry import set_request_context
from mesh_inbox.models.envelope import loads_strict
from mesh_inbox.services.commands import (
    SUPPORTED_OPERATIONS,
    CommandExecutor,
    UnknownOperation,
    parse_compact,
    parse_envelope,
)

router = APIRouter(tags=["nqp"])

_COMPACT_CODES = ["MD", "MP", "MPP", "NR", "MDI", "SH"]


@router.post("/nqp")
async def post_nqp(
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    set_request_context(surface="envelope")
    try:
        body = loads_strict(await request.body())
    except ValueError as e:
        raise ClientError(f"Request body is not valid JSON: {e}", error_code="INVALID_JSON") from e

    parsed = parse_envelope(body)
    if isinstance(parsed, UnknownOperation):
        raise UnsupportedOperationError(parsed.raw_operation, SUPPORTED_OPERATIONS)

    result = await executor.execute(parsed)
    data = {**result.data, "os_cmd": parsed.raw_operation}
    return render(request, f"NQP {parsed.raw_operation}", data)


@router.get("/nqp")
async def get_nqp(
    request: Request,
    executor: CommandExecutor = Depends(get_executor),
) -> Response:
    set_request_context(surface="compact")
    parsed = parse_compact(dict(request.query_params))
    if isinstance(parsed, UnknownOperation):
        raise UnsupportedOperationError(parsed.raw_operation, _COMPACT_CODES + list(SUPPORTED_OPERATIONS))

    result = await executor.execute(parsed)
    return render(request, f"NQP compact {parsed.raw_operation}", result.data)
