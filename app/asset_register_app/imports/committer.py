from __future__ import annotations

from typing import Any

from asset_register_app.imports.models import DryRunSession, ImportMode, ImportOutcome, RowOutcome
from asset_register_app.imports.records import TypedRow, build_typed_row
from asset_register_app.infrastructure.logging import get_logger
from asset_register_app.storage.repository import AssetRepository

LOGGER = get_logger(__name__)

ARCHIVE_FAILED = "archive_failed"


def typed_rows_for_session(session: DryRunSession) -> list[TypedRow]:
    return [
        build_typed_row(session.entity_type, result.row_number, result.normalized)
        for result in session.report.rows
    ]


def outcome_failures(outcome: ImportOutcome) -> list[dict[str, Any]]:
    return [item.to_dict() for item in outcome.row_outcomes if item.action in ("failed", ARCHIVE_FAILED)]


class ImportCommitter:
    """Applies a clean dry-run session to the repository, one independent write per row."""

    def __init__(self, repository: AssetRepository) -> None:
        self.repository = repository

    def apply_row(self, session: DryRunSession, row: TypedRow, *, actor: str) -> tuple[str, str]:
        entity = session.entity_type
        vessel_id = session.vessel_id
        key = row.natural_key
        record = row.to_record()

        if session.mode == ImportMode.ADD:
            self.repository.create(entity, vessel_id, record, actor=actor)
            return "created", f"Created {entity.value} '{key}'."

        if session.mode == ImportMode.UPDATE:
            if self.repository.update_by_key(entity, vessel_id, key, record, actor=actor):
                return "updated", f"Updated {entity.value} '{key}'."
            return "skipped", f"No existing {entity.value} '{key}' to update."

        if self.repository.get_by_key(entity, vessel_id, key) is not None:
            self.repository.update_by_key(entity, vessel_id, key, record, actor=actor)
            return "updated", f"Updated {entity.value} '{key}'."
        self.repository.create(entity, vessel_id, record, actor=actor)
        return "created", f"Created {entity.value} '{key}'."

    def apply(self, session: DryRunSession, *, actor: str = "") -> ImportOutcome:
        counts = {"created": 0, "updated": 0, "skipped": 0, "failed": 0}
        outcomes: list[RowOutcome] = []
        rows = typed_rows_for_session(session)

        for row in rows:
            try:
                action, message = self.apply_row(session, row, actor=actor)
            except Exception as exc:
                action, message = "failed", str(exc)
                LOGGER.warning(
                    "Bulk import row %s (%s) failed: %s",
                    row.row_number,
                    row.natural_key,
                    exc,
                    extra={
                        "event": "bulk_commit_row_failed",
                        "entity_type": session.entity_type.value,
                        "vessel_id": session.vessel_id,
                        "row": row.row_number,
                        "key": row.natural_key,
                    },
                )
            counts[action] += 1
            outcomes.append(RowOutcome(row.row_number, row.natural_key, action, message))

        archived = 0
        if session.archive_missing:
            keep = {row.natural_key for row in rows}
            try:
                stored = self.repository.list_keys(session.entity_type, session.vessel_id)
                archived = self.repository.archive_by_keys(
                    session.entity_type,
                    session.vessel_id,
                    sorted(stored - keep),
                    actor=actor,
                )
            except Exception as exc:
                outcomes.append(RowOutcome(0, "", ARCHIVE_FAILED, str(exc)))
                LOGGER.warning(
                    "Archiving missing %s records failed: %s",
                    session.entity_type.plural,
                    exc,
                    extra={
                        "event": "bulk_archive_failed",
                        "entity_type": session.entity_type.value,
                        "vessel_id": session.vessel_id,
                    },
                )

        return ImportOutcome(
            created=counts["created"],
            updated=counts["updated"],
            skipped=counts["skipped"],
            archived=archived,
            failed=counts["failed"],
            row_outcomes=tuple(outcomes),
        )
