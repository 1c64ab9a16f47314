from __future__ import annotations

import os

TRUE_VALUES = {"1", "true", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "no", "n", "off"}

# Runtime
ASSETREG_ENV = "ASSETREG_ENV"

# Bulk import
ASSETREG_DRY_RUN_TTL_SEC = "ASSETREG_DRY_RUN_TTL_SEC"
ASSETREG_DRY_RUN_MAX_SESSIONS = "ASSETREG_DRY_RUN_MAX_SESSIONS"
ASSETREG_MAX_UPLOAD_BYTES = "ASSETREG_MAX_UPLOAD_BYTES"
ASSETREG_PREVIEW_ROW_LIMIT = "ASSETREG_PREVIEW_ROW_LIMIT"
ASSETREG_REFERENCE_POLICY = "ASSETREG_REFERENCE_POLICY"
ASSETREG_HISTORY_PAGE_MAX = "ASSETREG_HISTORY_PAGE_MAX"

# HTTP
ASSETREG_ERROR_INCLUDE_DETAILS = "ASSETREG_ERROR_INCLUDE_DETAILS"
ASSETREG_REQUEST_ID_HEADER_ENABLED = "ASSETREG_REQUEST_ID_HEADER_ENABLED"
ASSETREG_USER_HEADERS = "ASSETREG_USER_HEADERS"
ASSETREG_API_DOCS_ENABLED = "ASSETREG_API_DOCS_ENABLED"

# Logging
ASSETREG_LOG_LEVEL = "ASSETREG_LOG_LEVEL"
ASSETREG_LOG_JSON = "ASSETREG_LOG_JSON"
ASSETREG_LOG_CAPTURE_ROOT = "ASSETREG_LOG_CAPTURE_ROOT"


def get_env(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or "").strip()


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return default


def get_env_int(
    name: str,
    *,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = get_env(name, "")
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    if min_value is not None:
        value = max(int(min_value), value)
    if max_value is not None:
        value = min(int(max_value), value)
    return value
