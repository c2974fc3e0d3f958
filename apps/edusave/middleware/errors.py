import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from apps.edusave.errors import CoreError
from apps.edusave.utils.envelope import error

log = logging.getLogger("edusave.errors")


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    """
    Stable error envelopes. No stack traces leave the process.
    """

    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error(exc.message, exc.code, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error(_validation_message(exc), "validation_error", 400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error("Something went wrong. Please try again.", "internal_error", 500)
