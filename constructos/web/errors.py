"""Maps estimating error kinds onto HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from constructos.errors import EstimatingError

logger = structlog.get_logger(__name__)

STATUS_BY_KIND: dict[str, int] = {
    "not_found": 404,
    "unauthorized": 403,
    "illegal_transition": 409,
    "conflict": 409,
    "already_converted": 409,
    "validation_failed": 422,
    "partial_conversion": 500,
}


async def estimating_error_handler(request: Request, exc: EstimatingError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 400)
    log = logger.error if status_code >= 500 else logger.info
    log("request_rejected", path=request.url.path, kind=exc.kind, status_code=status_code)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EstimatingError, estimating_error_handler)
