from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from asset_register_app.core.env import ASSETREG_ERROR_INCLUDE_DETAILS, get_env_bool
from asset_register_app.core.errors import (
    FileParseError,
    ImportSessionMismatchError,
    StorageWriteError,
    TokenNotFoundError,
    UnknownEntityTypeError,
    UnknownImportModeError,
    UnsupportedFormatError,
    UploadTooLargeError,
    ValidationBlockedError,
)

ERROR_CODE_VALIDATION = "VALIDATION_ERROR"
ERROR_CODE_BAD_REQUEST = "BAD_REQUEST"
ERROR_CODE_NOT_FOUND = "NOT_FOUND"
ERROR_CODE_UNKNOWN_ENTITY_TYPE = "UNKNOWN_ENTITY_TYPE"
ERROR_CODE_UNKNOWN_IMPORT_MODE = "UNKNOWN_IMPORT_MODE"
ERROR_CODE_UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
ERROR_CODE_FILE_PARSE = "FILE_PARSE_ERROR"
ERROR_CODE_UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"
ERROR_CODE_TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
ERROR_CODE_VALIDATION_BLOCKED = "VALIDATION_BLOCKED"
ERROR_CODE_SESSION_MISMATCH = "SESSION_MISMATCH"
ERROR_CODE_STORAGE_WRITE = "STORAGE_WRITE_ERROR"
ERROR_CODE_INTERNAL = "INTERNAL_SERVER_ERROR"


@dataclass(frozen=True)
class ApiErrorSpec:
    status_code: int
    code: str
    message: str
    details: dict[str, Any] | None = None
    # Import errors carry details the client acts on; always sent.
    public_details: bool = False


class ApiError(RuntimeError):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.code = str(code)
        self.message = str(message)
        self.details = details


def request_id_from_request(request: Request) -> str:
    try:
        request_id = str(getattr(request.state, "request_id", "") or "").strip()
    except AttributeError:
        request_id = ""
    if request_id:
        return request_id
    from_header = str(request.headers.get("x-request-id", "")).strip()
    return from_header or "-"


def _include_details() -> bool:
    return get_env_bool(ASSETREG_ERROR_INCLUDE_DETAILS, default=False)


def build_api_error_payload(
    *,
    code: str,
    message: str,
    request_id: str,
    details: dict[str, Any] | None = None,
    public_details: bool = False,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ok": False,
        "error": {
            "code": str(code),
            "message": str(message),
        },
        "request_id": str(request_id or "-"),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if details and (public_details or _include_details()):
        payload["error"]["details"] = details
    return payload


def api_error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    public_details: bool = False,
) -> JSONResponse:
    request_id = request_id_from_request(request)
    payload = build_api_error_payload(
        code=code,
        message=message,
        request_id=request_id,
        details=details,
        public_details=public_details,
    )
    headers = {"X-Request-ID": request_id}
    return JSONResponse(payload, status_code=int(status_code), headers=headers)


def _normalize_import_exception(exc: Exception) -> ApiErrorSpec | None:
    if isinstance(exc, ValidationBlockedError):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_VALIDATION_BLOCKED,
            message=str(exc),
            details={"errors": exc.error_count},
            public_details=True,
        )

    if isinstance(exc, TokenNotFoundError):
        return ApiErrorSpec(status_code=400, code=ERROR_CODE_TOKEN_NOT_FOUND, message=str(exc))

    if isinstance(exc, ImportSessionMismatchError):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_SESSION_MISMATCH,
            message=str(exc),
            details={"field": exc.field, "expected": exc.expected, "received": exc.received},
            public_details=True,
        )

    if isinstance(exc, StorageWriteError):
        details: dict[str, Any] = {"historyId": exc.history_id, "failures": exc.failures}
        if exc.outcome is not None:
            details["outcome"] = exc.outcome.to_dict()
        return ApiErrorSpec(
            status_code=500,
            code=ERROR_CODE_STORAGE_WRITE,
            message=str(exc),
            details=details,
            public_details=True,
        )

    if isinstance(exc, UploadTooLargeError):
        return ApiErrorSpec(
            status_code=413,
            code=ERROR_CODE_UPLOAD_TOO_LARGE,
            message=str(exc),
            details={"sizeBytes": exc.size_bytes, "maxBytes": exc.max_bytes},
            public_details=True,
        )

    if isinstance(exc, UnsupportedFormatError):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_UNSUPPORTED_FORMAT,
            message=str(exc),
            details={"fileName": exc.file_name, "extension": exc.extension},
            public_details=True,
        )

    if isinstance(exc, FileParseError):
        return ApiErrorSpec(status_code=400, code=ERROR_CODE_FILE_PARSE, message=str(exc))

    if isinstance(exc, UnknownEntityTypeError):
        return ApiErrorSpec(status_code=400, code=ERROR_CODE_UNKNOWN_ENTITY_TYPE, message=str(exc))

    if isinstance(exc, UnknownImportModeError):
        return ApiErrorSpec(status_code=400, code=ERROR_CODE_UNKNOWN_IMPORT_MODE, message=str(exc))

    return None


def normalize_exception(exc: Exception) -> ApiErrorSpec:
    if isinstance(exc, ApiError):
        return ApiErrorSpec(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    import_spec = _normalize_import_exception(exc)
    if import_spec is not None:
        return import_spec

    if isinstance(exc, RequestValidationError):
        return ApiErrorSpec(
            status_code=422,
            code=ERROR_CODE_VALIDATION,
            message="Request validation failed. Check field values and try again.",
            details={"errors": exc.errors()},
        )

    if isinstance(exc, ValueError):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_BAD_REQUEST,
            message=str(exc) or "Request parameters are invalid.",
            details={"reason": str(exc)},
        )

    if isinstance(exc, StarletteHTTPException):
        code = ERROR_CODE_INTERNAL
        if exc.status_code == 400:
            code = ERROR_CODE_BAD_REQUEST
        elif exc.status_code == 404:
            code = ERROR_CODE_NOT_FOUND
        elif exc.status_code == 422:
            code = ERROR_CODE_VALIDATION
        return ApiErrorSpec(
            status_code=int(exc.status_code),
            code=code,
            message=str(exc.detail or "HTTP request failed."),
            details={"reason": str(exc.detail or "")},
        )

    return ApiErrorSpec(
        status_code=500,
        code=ERROR_CODE_INTERNAL,
        message="An unexpected error occurred. Please contact support if this continues.",
        details={"reason": str(exc), "type": exc.__class__.__name__},
    )
