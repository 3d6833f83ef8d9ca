import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mcq_engine.core.logging import request_id_var

logger = logging.getLogger(__name__)


class MCQEngineError(Exception):
    """Base class for errors raised by the tree, generation and transformation core."""

    code = "engine_error"
    status_code = 500


class InvalidPathError(MCQEngineError):
    """A tree address does not follow the ``level[index]`` grammar or does not resolve."""

    code = "invalid_path"
    status_code = 422


class EmptyTreeError(MCQEngineError):
    """The tree has no traversable content to select a node from."""

    code = "empty_tree"
    status_code = 409


class ContractViolationError(MCQEngineError):
    """Oracle output failed shape or count validation."""

    code = "contract_violation"
    status_code = 502


class GenerationExhaustedError(MCQEngineError):
    code = "generation_exhausted"
    status_code = 502


class InvalidBatchError(MCQEngineError):
    code = "invalid_batch"
    status_code = 422


class OracleUnavailableError(MCQEngineError):
    code = "oracle_unavailable"
    status_code = 503


class MappingNotFoundError(MCQEngineError):
    code = "mapping_not_found"
    status_code = 404


class UnknownCategoryError(MCQEngineError):
    code = "unknown_category"
    status_code = 404


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request_id_var.get()


def error_response(request: Request, *, code: str, message: str, status_code: int, details=None) -> JSONResponse:
    """Every failure leaves the API in the same envelope so dashboards can show one error shape."""
    body = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
            "details": jsonable_encoder(details),
        },
    }
    return JSONResponse(status_code=status_code, content=body)


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(request, code="http_error", message=str(exc.detail), status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Custom validator errors carry exception objects in ``ctx``; keep only the readable parts.
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return error_response(
        request,
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=details,
    )


async def engine_exception_handler(request: Request, exc: MCQEngineError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Engine error | request_id=%s code=%s error=%s", get_request_id(request), exc.code, exc)
    cause = exc.__cause__
    return error_response(
        request,
        code=exc.code,
        message=str(exc),
        status_code=exc.status_code,
        details={"cause": str(cause)} if cause else None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s path=%s", get_request_id(request), request.url.path, exc_info=exc)
    return error_response(request, code="internal_error", message="Internal server error", status_code=500)


async def request_id_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    token = request_id_var.set(request.state.request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request.state.request_id
    return response
