from __future__ import annotations

from functools import lru_cache

from asset_register_app.core.config import AppConfig
from asset_register_app.imports.service import BulkImportService
from asset_register_app.storage.repository import InMemoryAssetRepository


@lru_cache(maxsize=1)
def _base_config() -> AppConfig:
    return AppConfig.from_env()


@lru_cache(maxsize=1)
def _base_import_service() -> BulkImportService:
    return BulkImportService(_base_config(), InMemoryAssetRepository())


def get_config() -> AppConfig:
    return _base_config()


def get_import_service() -> BulkImportService:
    return _base_import_service()


def _clear_base_config_cache() -> None:
    _base_config.cache_clear()


def _clear_base_import_service_cache() -> None:
    _base_import_service.cache_clear()


get_config.cache_clear = _clear_base_config_cache  # type: ignore[attr-defined]
get_import_service.cache_clear = _clear_base_import_service_cache  # type: ignore[attr-defined]
