import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from frontdesk.errors import (
    Forbidden,
    InvalidTransition,
    NotCheckedIn,
    NotFound,
    QueueError,
    QueueValidationError,
    RoomHasNoActiveOccupant,
    RoomOccupiedByOther,
)

logger = logging.getLogger("frontdesk.api")


# Most specific class first; QueueError subclasses not listed fall back to 400.
QUEUE_ERROR_STATUS: tuple[tuple[type[QueueError], int], ...] = (
    (QueueValidationError, 422),
    (InvalidTransition, 409),
    (NotCheckedIn, 409),
    (RoomOccupiedByOther, 409),
    (RoomHasNoActiveOccupant, 409),
    (Forbidden, 403),
    (NotFound, 404),
)


def status_for(exc: QueueError) -> int:
    for cls, status_code in QUEUE_ERROR_STATUS:
        if isinstance(exc, cls):
            return status_code
    return 400


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _error_response(request: Request, status_code: int, detail, **extra) -> JSONResponse:
    request_id = _get_request_id(request)
    payload: dict = {"detail": detail, "request_id": request_id, **extra}

    response = JSONResponse(status_code=status_code, content=payload)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QueueError)
    async def queue_error_handler(request: Request, exc: QueueError):
        status_code = status_for(exc)
        logger.info(
            "queue_error request_id=%s code=%s status=%s",
            _get_request_id(request),
            exc.code,
            status_code,
        )
        return _error_response(request, status_code, exc.message, code=exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(request, exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, 422, jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error request_id=%s", _get_request_id(request), exc_info=exc)
        return _error_response(request, 500, "Internal Server Error")


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Pydantic puts the raw exception object in ctx for custom validators.
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
