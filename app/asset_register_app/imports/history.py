from __future__ import annotations

import threading
import uuid
from datetime import datetime

from asset_register_app.core.defaults import DEFAULT_HISTORY_PAGE_MAX, DEFAULT_HISTORY_PAGE_SIZE
from asset_register_app.imports.models import (
    EntityType,
    HistoryFile,
    HistoryPage,
    ImportHistoryRecord,
    ImportMode,
    ImportOutcome,
)
from asset_register_app.infrastructure.logging import get_logger

LOGGER = get_logger(__name__)

FILE_KIND_ORIGINAL = "file"
FILE_KIND_ERRORS = "errors"


class ImportHistoryLedger:
    """Append-only record of committed imports, kept for the life of the process."""

    def __init__(self, *, page_max: int = DEFAULT_HISTORY_PAGE_MAX) -> None:
        self._page_max = max(1, int(page_max))
        self._lock = threading.Lock()
        self._records: list[ImportHistoryRecord] = []
        self._by_id: dict[str, ImportHistoryRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record(
        self,
        *,
        entity_type: EntityType,
        mode: ImportMode,
        archive_missing: bool,
        user_id: str,
        vessel_id: str,
        outcome: ImportOutcome,
        started_at: datetime,
        finished_at: datetime,
        status: str,
        original_file: bytes,
        original_file_name: str,
    ) -> str:
        history_id = uuid.uuid4().hex
        entry = ImportHistoryRecord(
            id=history_id,
            entity_type=entity_type,
            mode=mode,
            archive_missing=bool(archive_missing),
            user_id=str(user_id or ""),
            vessel_id=str(vessel_id or ""),
            outcome=outcome,
            started_at=started_at,
            finished_at=finished_at,
            status=status,
            original_file=bytes(original_file),
            original_file_name=str(original_file_name or ""),
        )
        with self._lock:
            self._records.append(entry)
            self._by_id[history_id] = entry
        LOGGER.info(
            "Recorded %s import %s by %s.",
            entity_type.value,
            history_id,
            entry.user_id,
            extra={
                "event": "import_history_recorded",
                "history_id": history_id,
                "entity_type": entity_type.value,
                "status": status,
                **outcome.count_fields(),
            },
        )
        return history_id

    def list(
        self,
        entity_type: EntityType | str | None = None,
        limit: int = DEFAULT_HISTORY_PAGE_SIZE,
        offset: int = 0,
    ) -> HistoryPage:
        selected = EntityType.parse(entity_type) if entity_type else None
        page_limit = min(self._page_max, max(1, int(limit)))
        page_offset = max(0, int(offset))
        with self._lock:
            matching = [item for item in reversed(self._records) if selected is None or item.entity_type == selected]
        window = matching[page_offset : page_offset + page_limit]
        return HistoryPage(items=[item.summary() for item in window], total=len(matching))

    def get(self, history_id: str) -> ImportHistoryRecord | None:
        with self._lock:
            return self._by_id.get(str(history_id or "").strip())

    def get_file(self, history_id: str, file_kind: str) -> HistoryFile | None:
        entry = self.get(history_id)
        if entry is None:
            return None
        kind = str(file_kind or "").strip().lower()
        if kind == FILE_KIND_ORIGINAL:
            return HistoryFile(data=entry.original_file, file_name=entry.original_file_name)
        if kind == FILE_KIND_ERRORS:
            # Only clean dry runs reach the ledger, so there is no error report to keep.
            LOGGER.debug(
                "No error report retained for import %s.",
                entry.id,
                extra={"event": "history_error_report_missing", "history_id": entry.id},
            )
        return None
