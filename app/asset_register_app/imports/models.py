"""Domain types shared by the bulk import pipeline.

Raw uploads become ``RawRow`` values, the validator turns them into a
``ValidationReport``, a clean report is cached as a ``DryRunSession`` and a
commit produces an ``ImportOutcome`` that is frozen into an
``ImportHistoryRecord``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from asset_register_app.core.errors import UnknownEntityTypeError, UnknownImportModeError


class EntityType(str, Enum):
    COMPONENT = "component"
    SPARE = "spare"
    STORE = "store"

    @classmethod
    def parse(cls, value: Any) -> "EntityType":
        if isinstance(value, cls):
            return value
        cleaned = str(value or "").strip().lower()
        aliases = {
            "components": "component",
            "spares": "spare",
            "stores": "store",
        }
        cleaned = aliases.get(cleaned, cleaned)
        try:
            return cls(cleaned)
        except ValueError:
            raise UnknownEntityTypeError(str(value or "")) from None

    @property
    def plural(self) -> str:
        return f"{self.value}s"


class ImportMode(str, Enum):
    ADD = "add"
    UPDATE = "update"
    UPSERT = "upsert"

    @classmethod
    def parse(cls, value: Any) -> "ImportMode":
        if isinstance(value, cls):
            return value
        cleaned = str(value or "").strip().lower()
        try:
            return cls(cleaned)
        except ValueError:
            raise UnknownImportModeError(str(value or "")) from None


class RowStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class RawRow:
    """One data row keyed by verbatim header text. ``index`` is 1-based."""

    index: int
    values: dict[str, str]

    @property
    def headers(self) -> list[str]:
        return list(self.values.keys())

    def get(self, header: str) -> str:
        return str(self.values.get(header) or "")


@dataclass(frozen=True)
class ValidationSummary:
    ok: int = 0
    warnings: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"ok": self.ok, "warnings": self.warnings, "errors": self.errors}


@dataclass(frozen=True)
class RowValidationResult:
    row_number: int
    status: RowStatus
    messages: tuple[str, ...] = ()
    normalized: dict[str, Any] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return self.status == RowStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "status": self.status.value,
            "messages": list(self.messages),
            "normalized": dict(self.normalized),
        }


@dataclass(frozen=True)
class ValidationReport:
    columns: tuple[str, ...]
    summary: ValidationSummary
    rows: tuple[RowValidationResult, ...]

    @property
    def is_clean(self) -> bool:
        return self.summary.errors == 0

    def preview(self, limit: int) -> list[dict[str, Any]]:
        return [row.to_dict() for row in self.rows[: max(0, int(limit))]]


@dataclass(frozen=True)
class DryRunSession:
    token: str
    entity_type: EntityType
    mode: ImportMode
    archive_missing: bool
    vessel_id: str
    raw_rows: tuple[RawRow, ...]
    report: ValidationReport
    original_file_bytes: bytes
    original_file_name: str
    created_at: datetime
    created_by: str = ""


@dataclass(frozen=True)
class RowOutcome:
    row_number: int
    natural_key: str
    action: str  # created / updated / skipped / failed
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "key": self.natural_key,
            "action": self.action,
            "message": self.message,
        }


@dataclass(frozen=True)
class ImportOutcome:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    archived: int = 0
    failed: int = 0
    row_outcomes: tuple[RowOutcome, ...] = ()

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped + self.failed

    def counts(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "archived": self.archived,
            "failed": self.failed,
        }

    def count_fields(self) -> dict[str, int]:
        fields = {f"{key}_count": value for key, value in self.counts().items()}
        fields["processed_count"] = self.processed
        return fields

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = self.counts()
        payload["rows"] = [item.to_dict() for item in self.row_outcomes]
        return payload


@dataclass(frozen=True)
class ImportHistoryRecord:
    id: str
    entity_type: EntityType
    mode: ImportMode
    archive_missing: bool
    user_id: str
    vessel_id: str
    outcome: ImportOutcome
    started_at: datetime
    finished_at: datetime
    status: str
    original_file: bytes
    original_file_name: str

    def summary(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.entity_type.value,
            "date": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "user": self.user_id,
            "vesselId": self.vessel_id,
            "mode": self.mode.value,
            "archiveMissing": self.archive_missing,
            "status": self.status,
            "fileName": self.original_file_name,
        }
        payload.update(self.outcome.counts())
        return payload


@dataclass(frozen=True)
class HistoryPage:
    items: list[dict[str, Any]]
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"items": list(self.items), "total": self.total}


@dataclass(frozen=True)
class HistoryFile:
    data: bytes
    file_name: str
    media_type: str = "application/octet-stream"


@dataclass(frozen=True)
class DryRunResult:
    token: str
    report: ValidationReport


@dataclass(frozen=True)
class CommitResult:
    outcome: ImportOutcome
    history_id: str
