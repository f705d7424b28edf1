from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from marketboard.exceptions import (
    AppError,
    FxUnavailableError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)

# Most specific first; AppError is the catch-all.
STATUS_BY_ERROR: list[tuple[type[AppError], int]] = [
    (NotFoundError, 404),
    (ValidationError, 400),
    (UpstreamUnavailableError, 502),
    (FxUnavailableError, 502),
    (AppError, 500),
]


def error_response(status_code: int, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message},
    )


def _handler_for(status_code: int):
    async def handler(request: Request, exc: AppError) -> JSONResponse:
        return error_response(status_code, exc)

    return handler


def register_exception_handlers(app: FastAPI) -> None:
    for error_type, status_code in STATUS_BY_ERROR:
        app.add_exception_handler(error_type, _handler_for(status_code))
