"""
Exception handlers for the pass pipeline errors.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from passkit.core.errors import (
    CertificateError,
    DigestError,
    InvalidStatusError,
    PassKitError,
    PassNotFoundError,
    PassRevokedError,
    SerialNumberTakenError,
    SigningError,
)

logger = logging.getLogger("passkit")

# Checked in order; first matching class wins
_STATUS_CODES = (
    (PassNotFoundError, status.HTTP_404_NOT_FOUND),
    (PassRevokedError, status.HTTP_409_CONFLICT),
    (SerialNumberTakenError, status.HTTP_409_CONFLICT),
    (InvalidStatusError, status.HTTP_400_BAD_REQUEST),
    (CertificateError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (SigningError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (DigestError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_code_for(exc: PassKitError) -> int:
    for exc_class, code in _STATUS_CODES:
        if isinstance(exc, exc_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def passkit_error_handler(request: Request, exc: PassKitError):
    """Shape pipeline errors as {"detail": {"error": ..., "message": ...}}."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"detail": {"error": exc.error_code, "message": exc.message}},
    )


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(PassKitError, passkit_error_handler)
