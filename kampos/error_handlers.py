import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import DeleteBlockedError, KamposError, StoreError


logger = logging.getLogger(__name__)


def add_error_handlers(app: FastAPI):
    @app.exception_handler(KamposError)
    async def kampos_error_handler(request: Request, exc: KamposError):
        content = {"detail": exc.message}
        if isinstance(exc, StoreError):
            logger.error("Store error on %s %s: [%s] %s", request.method, request.url.path, exc.code, exc.message)
            content = {"detail": exc.user_message, "code": exc.code}
        elif isinstance(exc, DeleteBlockedError):
            content["blocking"] = exc.blocking
        else:
            logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected error occurred. Please try again.", "code": "unknown-error"},
        )
