import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Request-level failure rendered as ``{code, message}``."""

    def __init__(self, status_code: int, message: str, code: int = -1):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


def error_response(status_code: int, message: str, code: int = -1) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message})


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.message, exc.code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Rejected {request.url.path}: {exc.errors()}")
    return error_response(400, "请求参数错误")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
