from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from asset_register_app.web.core.runtime import get_config, get_import_service  # noqa: E402

_ISOLATED_ENV_KEYS = (
    "ASSETREG_ENV",
    "ASSETREG_REFERENCE_POLICY",
    "ASSETREG_ERROR_INCLUDE_DETAILS",
    "ASSETREG_USER_HEADERS",
    "ASSETREG_API_DOCS_ENABLED",
)


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch: pytest.MonkeyPatch):
    for key in _ISOLATED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_config.cache_clear()
    get_import_service.cache_clear()
    yield
    get_config.cache_clear()
    get_import_service.cache_clear()
