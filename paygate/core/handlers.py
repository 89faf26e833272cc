"""
Exception handlers for the FastAPI application.

One handler covers every BaseAppError subclass: full details go to the log,
the client gets `to_safe_dict()` with the exception's status code.
Rejected creation requests are logged at info level; they are routine.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from paygate.core.exceptions import BaseAppError, TransactionRejectedError
import logging

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: BaseAppError) -> JSONResponse:
    message = f"[{exc.__class__.__name__}] {exc.message}"

    if exc.http_status_code >= 500:
        logger.error(message, extra={"app_error": exc.to_dict()})
    elif isinstance(exc, TransactionRejectedError):
        logger.info(message, extra={"app_error": exc.to_dict()})
    else:
        logger.warning(message, extra={"app_error": exc.to_dict()})

    return JSONResponse(
        status_code=exc.http_status_code,
        content=exc.to_safe_dict(),
    )


def setup_exception_handlers(app: FastAPI):
    """Register the generic handler for the whole BaseAppError tree."""
    app.add_exception_handler(BaseAppError, app_exception_handler)
