from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from schoolflow.core.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
    WorkflowError,
)
from schoolflow.domain.aggregation import RevenueUnavailable


def _body(exc: WorkflowError, **extra) -> dict:
    return {"error": type(exc).__name__, "detail": str(exc), **extra}


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_body(exc, errors=exc.errors))


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "ValidationError", "detail": "Invalid request", "errors": errors},
    )


async def _forbidden(request: Request, exc: Forbidden) -> JSONResponse:
    return JSONResponse(status_code=403, content=_body(exc))


async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content=_body(exc))


async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=_body(exc, current_status=exc.current_status, action=exc.action),
    )


async def _conflict(request: Request, exc: Conflict) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=_body(exc, expected_version=exc.expected_version, actual_version=exc.actual_version),
    )


async def _revenue_unavailable(request: Request, exc: RevenueUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content=_body(exc))


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Forbidden, _forbidden)
    app.add_exception_handler(NotFound, _not_found)
    app.add_exception_handler(InvalidTransition, _invalid_transition)
    app.add_exception_handler(Conflict, _conflict)
    app.add_exception_handler(RevenueUnavailable, _revenue_unavailable)
