from __future__ import annotations

# Environment and config defaults
DEFAULT_ENV_NAME = "dev"
DEFAULT_DEV_ENV_NAMES = ("dev", "development", "local", "test")

# Bulk import defaults
DEFAULT_DRY_RUN_TTL_SEC = 3600
DEFAULT_DRY_RUN_MAX_SESSIONS = 64
DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024
DEFAULT_PREVIEW_ROW_LIMIT = 100
DEFAULT_REFERENCE_POLICY = "presence"
DEFAULT_HISTORY_PAGE_SIZE = 20
DEFAULT_HISTORY_PAGE_MAX = 100
DEFAULT_TEMPLATE_VERSION = "1.0"

# Identity defaults
DEFAULT_USER_ID = "system"
DEFAULT_USER_HEADERS = ("x-forwarded-email", "x-forwarded-user", "x-user-id")
