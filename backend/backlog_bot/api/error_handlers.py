"""Error Handlers: global exception handlers for the bot's HTTP surface.

Invariants:
    - BacklogBotError -> its http_status with the to_response() envelope
    - RequestValidationError -> 400 with field-level details
    - Any other exception -> 500, never leaks internal details
    - Paths under /oauth/ are opened by a browser: same status, rendered as HTML

Design Decisions:
    - Log level follows the error's severity: a forged login state is a warning,
      a database outage is an error
"""

import html
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response

from backlog_bot.core.errors import BacklogBotError, ErrorSeverity

logger = logging.getLogger(__name__)

BROWSER_PATH_PREFIX = "/oauth/"

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>YouTrack login</title></head>
<body><p>Login failed: {message}</p><p>Send /login to the bot to try again.</p></body>
</html>
"""

_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.ERROR,
}


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BacklogBotError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)


def _render(request: Request, status_code: int, envelope: dict) -> Response:
    if request.url.path.startswith(BROWSER_PATH_PREFIX):
        message = html.escape(envelope["error"]["message"])
        return HTMLResponse(ERROR_PAGE.format(message=message), status_code=status_code)
    return JSONResponse(status_code=status_code, content=envelope)


async def domain_error_handler(request: Request, exc: BacklogBotError) -> Response:
    logger.log(
        _LOG_LEVELS.get(exc.severity, logging.ERROR),
        f"{exc.code}: {exc.message}",
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return _render(request, exc.http_status, exc.to_response())


async def validation_error_handler(
    request: Request, exc: RequestValidationError,
) -> Response:
    logger.warning(
        f"Validation error on {request.url.path}: {exc.errors()}",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return _render(
        request, status.HTTP_400_BAD_REQUEST, _validation_envelope(exc),
    )


async def generic_error_handler(request: Request, exc: Exception) -> Response:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        exc_info=True,
        extra={"path": request.url.path},
    )
    return _render(request, status.HTTP_500_INTERNAL_SERVER_ERROR, {
        "error": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "category": "internal",
            "severity": ErrorSeverity.CRITICAL.value,
        },
    })


def _validation_envelope(exc: RequestValidationError) -> dict:
    details = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    fields = ", ".join(d["field"].rsplit(".", 1)[-1] for d in details)
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": f"Invalid request data ({fields})" if fields else "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": details,
        },
    }
