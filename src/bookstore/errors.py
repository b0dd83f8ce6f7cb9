# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and the JSON error responses built from it.

Every error body carries a stable ``errorCode``, a human readable message, a
timestamp and the request trace id. Internal details (stack traces, store
exceptions, hashes) never reach the client.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class AppError(Exception):
    status_code = 500
    code = ErrorCode.INTERNAL_SERVER_ERROR
    default_message = "An internal server error occurred. Please try again later"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    code = ErrorCode.VALIDATION_FAILED
    default_message = "Invalid request data provided"


class WeakPassword(AppError):
    status_code = 400
    code = ErrorCode.WEAK_PASSWORD
    default_message = "Password is too weak"


class UserAlreadyExists(AppError):
    status_code = 409
    code = ErrorCode.USER_ALREADY_EXISTS
    default_message = "A user with this email already exists"


class InvalidCredentials(AppError):
    status_code = 401
    code = ErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class TokenExpired(AppError):
    status_code = 401
    code = ErrorCode.TOKEN_EXPIRED
    default_message = "Session expired or invalid. Please log in again"


class UserNotFound(AppError):
    status_code = 404
    code = ErrorCode.USER_NOT_FOUND
    default_message = "User not found"


class InternalError(AppError):
    pass


def trace_id_for(request: Request) -> str:
    tid = getattr(request.state, "trace_id", None)
    if not tid:
        tid = uuid.uuid4().hex
        request.state.trace_id = tid
    return tid


def error_body(
    code: ErrorCode,
    message: str,
    trace_id: Optional[str],
    details: Optional[str] = None,
    errors: Optional[Dict[str, List[str]]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "message": message,
        "errorCode": code.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "traceId": trace_id,
    }
    if details:
        body["details"] = details
    if errors:
        body["errors"] = errors
    return body


def _json(status_code: int, body: Dict[str, Any], trace_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers={TRACE_HEADER: trace_id})


def _field_errors(exc: RequestValidationError) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc) or "body"
        out.setdefault(field, []).append(str(err.get("msg", "invalid")))
    return out


_HTTP_STATUS_CODES = {
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
}


def _code_for_status(status_code: int) -> ErrorCode:
    if status_code >= 500:
        return ErrorCode.INTERNAL_SERVER_ERROR
    return _HTTP_STATUS_CODES.get(status_code, ErrorCode.BAD_REQUEST)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        tid = trace_id_for(request)
        if exc.status_code >= 500:
            logger.error("%s on %s %s (trace %s): %s", exc.code.value, request.method, request.url.path, tid, exc.details or exc.message)
            body = error_body(exc.code, exc.message, tid)
        else:
            body = error_body(exc.code, exc.message, tid, details=exc.details)
        return _json(exc.status_code, body, tid)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        tid = trace_id_for(request)
        message = exc.detail if isinstance(exc.detail, str) and exc.status_code < 500 else AppError.default_message
        response = _json(exc.status_code, error_body(_code_for_status(exc.status_code), message, tid), tid)
        for name, value in (getattr(exc, "headers", None) or {}).items():
            response.headers[name] = value
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        tid = trace_id_for(request)
        body = error_body(
            ErrorCode.VALIDATION_FAILED,
            ValidationFailed.default_message,
            tid,
            errors=_field_errors(exc),
        )
        return _json(400, body, tid)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        tid = trace_id_for(request)
        logger.exception("Unhandled error on %s %s (trace %s)", request.method, request.url.path, tid)
        body = error_body(ErrorCode.INTERNAL_SERVER_ERROR, AppError.default_message, tid)
        return _json(500, body, tid)
