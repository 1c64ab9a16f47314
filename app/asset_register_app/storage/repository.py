from __future__ import annotations

import threading
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

import pandas as pd

from asset_register_app.core.errors import DuplicateRecordError
from asset_register_app.imports.models import EntityType
from asset_register_app.infrastructure.logging import get_logger

LOGGER = get_logger(__name__)

AUDIT_COLUMNS = [
    "record_id",
    "vessel_id",
    "code",
    "archived",
    "created_at",
    "created_by",
    "updated_at",
    "updated_by",
    "archived_at",
    "archived_by",
]


class AssetRepository(Protocol):
    """Storage port for component, spare and store records, keyed by vessel and natural key."""

    def create(self, entity_type: EntityType, vessel_id: str, record: dict[str, Any], *, actor: str = "") -> str:
        ...

    def update_by_key(
        self,
        entity_type: EntityType,
        vessel_id: str,
        key: str,
        changes: dict[str, Any],
        *,
        actor: str = "",
    ) -> bool:
        ...

    def get_by_key(self, entity_type: EntityType, vessel_id: str, key: str) -> dict[str, Any] | None:
        ...

    def list_records(self, entity_type: EntityType, vessel_id: str, include_archived: bool = False) -> pd.DataFrame:
        ...

    def list_keys(self, entity_type: EntityType, vessel_id: str) -> set[str]:
        ...

    def archive_by_keys(self, entity_type: EntityType, vessel_id: str, keys: Iterable[str], *, actor: str = "") -> int:
        ...


class InMemoryAssetRepository:
    """Process-local repository. Archiving is a soft delete; archived keys can be re-created."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tables: dict[tuple[EntityType, str], dict[str, dict[str, Any]]] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _table(self, entity_type: EntityType | str, vessel_id: str) -> dict[str, dict[str, Any]]:
        return self._tables.setdefault((EntityType.parse(entity_type), str(vessel_id or "")), {})

    def create(self, entity_type: EntityType, vessel_id: str, record: dict[str, Any], *, actor: str = "") -> str:
        key = str(record.get("code") or "").strip()
        if not key:
            raise ValueError("Record is missing its natural key.")
        selected = EntityType.parse(entity_type)
        with self._lock:
            table = self._table(selected, vessel_id)
            existing = table.get(key)
            if existing is not None and not existing.get("archived"):
                raise DuplicateRecordError(selected.value, str(vessel_id or ""), key)
            now = self._now()
            record_id = uuid.uuid4().hex
            table[key] = {
                **deepcopy(record),
                "record_id": record_id,
                "vessel_id": str(vessel_id or ""),
                "code": key,
                "archived": False,
                "created_at": now,
                "created_by": actor,
                "updated_at": now,
                "updated_by": actor,
                "archived_at": None,
                "archived_by": None,
            }
        return record_id

    def update_by_key(
        self,
        entity_type: EntityType,
        vessel_id: str,
        key: str,
        changes: dict[str, Any],
        *,
        actor: str = "",
    ) -> bool:
        cleaned_key = str(key or "").strip()
        with self._lock:
            existing = self._table(entity_type, vessel_id).get(cleaned_key)
            if existing is None or existing.get("archived"):
                return False
            for field, value in changes.items():
                if field in AUDIT_COLUMNS:
                    continue
                existing[field] = deepcopy(value)
            existing["updated_at"] = self._now()
            existing["updated_by"] = actor
        return True

    def get_by_key(self, entity_type: EntityType, vessel_id: str, key: str) -> dict[str, Any] | None:
        with self._lock:
            existing = self._table(entity_type, vessel_id).get(str(key or "").strip())
            if existing is None or existing.get("archived"):
                return None
            return deepcopy(existing)

    def list_records(self, entity_type: EntityType, vessel_id: str, include_archived: bool = False) -> pd.DataFrame:
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._table(entity_type, vessel_id).values()
                if include_archived or not row.get("archived")
            ]
        if not rows:
            return pd.DataFrame(columns=AUDIT_COLUMNS)
        return pd.DataFrame(rows).sort_values("code", kind="stable").reset_index(drop=True)

    def list_keys(self, entity_type: EntityType, vessel_id: str) -> set[str]:
        frame = self.list_records(entity_type, vessel_id)
        if frame.empty:
            return set()
        return {str(value) for value in frame["code"].tolist()}

    def archive_by_keys(self, entity_type: EntityType, vessel_id: str, keys: Iterable[str], *, actor: str = "") -> int:
        archived = 0
        with self._lock:
            table = self._table(entity_type, vessel_id)
            now = self._now()
            for key in keys:
                existing = table.get(str(key or "").strip())
                if existing is None or existing.get("archived"):
                    continue
                existing["archived"] = True
                existing["archived_at"] = now
                existing["archived_by"] = actor
                archived += 1
        if archived:
            LOGGER.info(
                "Archived %s %s record(s) for vessel '%s'.",
                archived,
                EntityType.parse(entity_type).value,
                vessel_id,
                extra={"event": "records_archived", "vessel_id": vessel_id, "count": archived},
            )
        return archived
