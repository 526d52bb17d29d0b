import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from opsdocs.core.exceptions import (
    ApplicationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id(request: Request) -> str:
    """ID запроса из заголовка или новый"""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def _error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    request_id = get_request_id(request)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
        headers={REQUEST_ID_HEADER: request_id},
    )


def _status_for(error: ApplicationError) -> int:
    if isinstance(error, ValidationFailedError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConflictError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _details_for(error: ApplicationError):
    if isinstance(error, ValidationFailedError):
        return [{"field": e.field, "message": e.message, "code": e.code} for e in error.errors]
    if isinstance(error, NotFoundError):
        return {"resource_type": error.resource_type, "resource_id": error.resource_id}
    if isinstance(error, ConflictError):
        return {"resource_type": error.resource_type, "identifier": error.identifier, "reason": error.reason}
    return None


async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    status_code = _status_for(exc)
    if isinstance(exc, InternalError):
        logger.error(f"Internal error on {request.method} {request.url.path}: {exc.message}")
        # Детали сбоя хранилища наружу не отдаем
        return _error_response(request, status_code, exc.code, "internal server error")
    return _error_response(request, status_code, exc.code, exc.message, _details_for(exc))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
            "code": "INVALID_VALUE",
        }
        for err in exc.errors()
    ]
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        ValidationFailedError.code,
        "request validation failed",
        details,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        InternalError.code,
        "internal server error",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
