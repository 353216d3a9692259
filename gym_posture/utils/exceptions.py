import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from gym_posture.utils.response import error_response

logger = logging.getLogger(__name__)


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.data = data


class PayloadTooLargeError(AppException):
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File exceeds the {limit / 1024 / 1024:.0f}MB limit (actual size: {size / 1024 / 1024:.2f}MB)",
            status_code=413,
            data={"size": size, "limit": limit},
        )


class InvalidImageError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class StorageError(Exception):
    """Raised by object storage gateways; callers decide whether it is fatal."""


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message, data=exc.data),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error"),
        )
