import traceback
from typing import Any, Dict, Iterable, List
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from craftlink.common.constants import request_id_ctx
from craftlink.common.errors import AppError, ErrorKind
from craftlink.common.logging_setup import get_logger
from craftlink.common.utils import build_error, json_error
from craftlink.config.settings import config_settings

logger = get_logger("craftlink.errors")

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")


def collect_field_errors(errors: Iterable[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Group validation errors by field path so every violated rule is reported."""
    field_errors: Dict[str, List[str]] = {}
    for err in errors:
        loc = [str(item) for item in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            field = ".".join(loc[1:]) or loc[0]
        else:
            field = ".".join(loc) or "body"

        ctx = err.get("ctx") or {}
        reasons = ctx.get("errors")
        if isinstance(reasons, list) and reasons:
            messages = [str(r) for r in reasons]
        else:
            messages = [err.get("msg", "Invalid value")]

        field_errors.setdefault(field, []).extend(messages)
    return field_errors


async def app_error_handler(request: Request, exc: AppError):

    rid = request_id_ctx.get(None)
    log = logger.warning if exc.status_code < 500 else logger.error
    log("request.app_error", extra={
        "path": request.url.path,
        "method": request.method,
        "error_code": exc.code,
        "reason": exc.message,
    })

    payload = build_error(code=exc.code, message=exc.message, errors=exc.errors, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    field_errors = collect_field_errors(exc.errors())
    logger.warning(
        "request.validation_failed",
        extra={
            "fields": sorted(field_errors),
            "path": request.url.path,
        },
    )

    payload = build_error(code=ErrorKind.VALIDATION.code, message="Validation failed",
                          errors=field_errors, request_id=rid)
    return json_error(payload, status_code=ErrorKind.VALIDATION.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):

    rid = request_id_ctx.get(None)

    if exc.status_code == status.HTTP_404_NOT_FOUND:
        code = ErrorKind.NOT_FOUND.code
        message = f"Route {request.method} {request.url.path} not found"
    else:
        code = f"HTTP_{exc.status_code}"
        message = exc.detail

    payload = build_error(code=code, message=message, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    settings = getattr(request.app.state, "settings", config_settings)
    if settings.is_prod:
        payload = build_error(code=ErrorKind.INTERNAL.code, message="An unexpected error occurred", request_id=rid)
    else:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        payload = build_error(code=ErrorKind.INTERNAL.code, message=str(exc), details={"stack": stack}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception,  # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        AppError,
        app_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        StarletteHTTPException,
        http_exception_handler
    )
