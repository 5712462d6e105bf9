# Translate database integrity failures into client-facing errors
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

log = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "This record already exists"
BAD_REFERENCE_MESSAGE = "Invalid reference to another record"
UNEXPECTED_MESSAGE = "Unexpected database error"


def describe_integrity_error(exc: IntegrityError) -> tuple[int, str]:
    """Map a driver integrity error to (status_code, detail).

    Works on the driver message so SQLite and PostgreSQL both resolve.
    """
    text = str(getattr(exc, "orig", exc)).lower()
    if "unique" in text or "duplicate key" in text:
        return 409, DUPLICATE_MESSAGE
    if "foreign key" in text:
        return 400, BAD_REFERENCE_MESSAGE
    return 400, UNEXPECTED_MESSAGE


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    status, detail = describe_integrity_error(exc)
    log.error("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=status, content={"detail": detail})
