from __future__ import annotations

from dataclasses import dataclass

from asset_register_app.core.defaults import (
    DEFAULT_DEV_ENV_NAMES,
    DEFAULT_DRY_RUN_MAX_SESSIONS,
    DEFAULT_DRY_RUN_TTL_SEC,
    DEFAULT_ENV_NAME,
    DEFAULT_HISTORY_PAGE_MAX,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_PREVIEW_ROW_LIMIT,
    DEFAULT_REFERENCE_POLICY,
)
from asset_register_app.core.env import (
    ASSETREG_DRY_RUN_MAX_SESSIONS,
    ASSETREG_DRY_RUN_TTL_SEC,
    ASSETREG_ENV,
    ASSETREG_HISTORY_PAGE_MAX,
    ASSETREG_MAX_UPLOAD_BYTES,
    ASSETREG_PREVIEW_ROW_LIMIT,
    ASSETREG_REFERENCE_POLICY,
    get_env,
    get_env_int,
)


DEV_ENV_NAMES = set(DEFAULT_DEV_ENV_NAMES)
REFERENCE_POLICIES = ("presence", "warn", "error")


def _resolve_reference_policy() -> str:
    raw = get_env(ASSETREG_REFERENCE_POLICY, DEFAULT_REFERENCE_POLICY).lower() or DEFAULT_REFERENCE_POLICY
    if raw not in REFERENCE_POLICIES:
        raise RuntimeError(
            f"{ASSETREG_REFERENCE_POLICY} must be one of: {', '.join(REFERENCE_POLICIES)} (got '{raw}')."
        )
    return raw


@dataclass(frozen=True)
class AppConfig:
    env: str = DEFAULT_ENV_NAME
    dry_run_ttl_seconds: int = DEFAULT_DRY_RUN_TTL_SEC
    dry_run_max_sessions: int = DEFAULT_DRY_RUN_MAX_SESSIONS
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    preview_row_limit: int = DEFAULT_PREVIEW_ROW_LIMIT
    reference_policy: str = DEFAULT_REFERENCE_POLICY
    history_page_max: int = DEFAULT_HISTORY_PAGE_MAX

    @property
    def is_dev_env(self) -> bool:
        return self.env in DEV_ENV_NAMES

    @staticmethod
    def from_env() -> "AppConfig":
        env_name = get_env(ASSETREG_ENV, DEFAULT_ENV_NAME).lower() or DEFAULT_ENV_NAME
        return AppConfig(
            env=env_name,
            dry_run_ttl_seconds=get_env_int(
                ASSETREG_DRY_RUN_TTL_SEC,
                default=DEFAULT_DRY_RUN_TTL_SEC,
                min_value=1,
            ),
            dry_run_max_sessions=get_env_int(
                ASSETREG_DRY_RUN_MAX_SESSIONS,
                default=DEFAULT_DRY_RUN_MAX_SESSIONS,
                min_value=1,
            ),
            max_upload_bytes=get_env_int(
                ASSETREG_MAX_UPLOAD_BYTES,
                default=DEFAULT_MAX_UPLOAD_BYTES,
                min_value=1,
            ),
            preview_row_limit=get_env_int(
                ASSETREG_PREVIEW_ROW_LIMIT,
                default=DEFAULT_PREVIEW_ROW_LIMIT,
                min_value=1,
            ),
            reference_policy=_resolve_reference_policy(),
            history_page_max=get_env_int(
                ASSETREG_HISTORY_PAGE_MAX,
                default=DEFAULT_HISTORY_PAGE_MAX,
                min_value=1,
            ),
        )
