"""
Global Error Handling
Maps sync errors to HTTP responses and catches everything else as a JSON 500
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.services.sync.errors import AlreadyRunningError, ApiError, AuthError, BatchWriteError

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handler middleware.
    Catches all unhandled exceptions and returns JSON error responses.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            logger.error(
                f"Unhandled exception during request",
                exc_info=True,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "client_host": request.client.host if request.client else None
                }
            )

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "error_type": type(exc).__name__,
                    "path": request.url.path
                }
            )


async def already_running_handler(request: Request, exc: AlreadyRunningError) -> JSONResponse:
    logger.info(f"Sync rejected for {exc.module}: already running")
    return JSONResponse(
        status_code=409,
        content={"status": "ERROR", "message": str(exc), "module": exc.module}
    )


async def upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Zoho upstream failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"status": "ERROR", "message": str(exc), "error_type": type(exc).__name__}
    )


async def batch_write_error_handler(request: Request, exc: BatchWriteError) -> JSONResponse:
    logger.error(f"Partial write on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "status": "ERROR",
            "message": str(exc),
            "module": exc.module,
            "upserted": exc.applied,
            "failed": exc.failed
        }
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AlreadyRunningError, already_running_handler)
    app.add_exception_handler(AuthError, upstream_error_handler)
    app.add_exception_handler(ApiError, upstream_error_handler)
    app.add_exception_handler(BatchWriteError, batch_write_error_handler)
