# market/api/errors.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from market.domain.errors import AppError, InternalError
from market.utils.logging import get_logger

logger = get_logger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InternalError):
        # cause stays in the log, the client only gets the generic message
        logger.error(
            "Request failed",
            method=request.method,
            path=request.url.path,
            error=exc.message,
            exc_info=exc.__cause__ or exc,
        )
        body = {"code": exc.code, "message": "internal server error"}
    else:
        logger.warning(
            "Request rejected",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        body = {"code": exc.code, "message": exc.message}
        if exc.details:
            body["details"] = exc.details

    return JSONResponse(status_code=exc.http_status, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
