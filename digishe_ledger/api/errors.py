"""Translate domain exceptions into HTTP responses"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from digishe_ledger.domain.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    BusinessInactive,
    CodeExpired,
    DomainException,
    GatewayError,
    GatewayUnreachable,
    InvalidCode,
    NotOnboarded,
    StorageError,
    ValidationError,
)

# Checked in order; subclasses before their bases
STATUS_CODES = [
    (ValidationError, 422),
    (AccountNotFound, 404),
    (AccountAlreadyExists, 409),
    (InvalidCode, 400),
    (CodeExpired, 400),
    (GatewayError, 502),
    (GatewayUnreachable, 503),
    (StorageError, 503),
    (NotOnboarded, 409),
    (BusinessInactive, 403),
]


def status_for(exc: DomainException) -> int:
    for exc_type, status in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status = status_for(exc)
    request_id = getattr(request.state, "request_id", "unknown")
    if status >= 500:
        logging.error(f"{exc.kind}: {exc}", extra={"request_id": request_id, "path": request.url.path})
    else:
        logging.info(f"{exc.kind}: {exc}", extra={"request_id": request_id, "path": request.url.path})
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": exc.kind})
