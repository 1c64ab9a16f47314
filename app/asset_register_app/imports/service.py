"""Bulk import service: dry run, commit and history over one repository."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Any

from asset_register_app.core.config import AppConfig
from asset_register_app.core.errors import (
    ImportSessionMismatchError,
    StorageWriteError,
    UploadTooLargeError,
    ValidationBlockedError,
)
from asset_register_app.imports.committer import ImportCommitter, outcome_failures
from asset_register_app.imports.history import ImportHistoryLedger
from asset_register_app.imports.models import (
    CommitResult,
    DryRunResult,
    EntityType,
    HistoryFile,
    HistoryPage,
    ImportMode,
)
from asset_register_app.imports.parsing import parse_upload
from asset_register_app.imports.session_store import DryRunSessionStore
from asset_register_app.imports.templates import get_template, strip_hint_row
from asset_register_app.imports.validation import EMPTY_FILE_MESSAGE, validate_rows
from asset_register_app.infrastructure.logging import get_logger
from asset_register_app.storage.repository import AssetRepository, InMemoryAssetRepository

LOGGER = get_logger(__name__)


class BulkImportService:
    def __init__(
        self,
        config: AppConfig | None = None,
        repository: AssetRepository | None = None,
        *,
        store: DryRunSessionStore | None = None,
        ledger: ImportHistoryLedger | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.repository = repository if repository is not None else InMemoryAssetRepository()
        self.store = store if store is not None else DryRunSessionStore(
            ttl_seconds=self.config.dry_run_ttl_seconds,
            max_sessions=self.config.dry_run_max_sessions,
        )
        self.ledger = ledger if ledger is not None else ImportHistoryLedger(page_max=self.config.history_page_max)
        self.committer = ImportCommitter(self.repository)

    def _known_references(self, entity_type: EntityType, vessel_id: str) -> dict[EntityType, set[str]]:
        if self.config.reference_policy == "presence":
            return {}
        targets = {rule.reference for rule in get_template(entity_type).columns if rule.reference is not None}
        return {target: self.repository.list_keys(target, vessel_id) for target in targets}

    def dry_run(
        self,
        entity_type: EntityType | str,
        mode: ImportMode | str,
        archive_missing: bool,
        vessel_id: str,
        file_bytes: bytes,
        file_name: str,
        user_id: str = "",
    ) -> DryRunResult:
        selected_type = EntityType.parse(entity_type)
        selected_mode = ImportMode.parse(mode)
        payload = bytes(file_bytes or b"")
        if len(payload) > self.config.max_upload_bytes:
            raise UploadTooLargeError(len(payload), self.config.max_upload_bytes)

        raw_rows = strip_hint_row(selected_type, parse_upload(payload, file_name))
        report = validate_rows(
            selected_type,
            raw_rows,
            selected_mode,
            vessel_id,
            reference_policy=self.config.reference_policy,
            known_references=self._known_references(selected_type, vessel_id),
        )
        token = self.store.put(
            entity_type=selected_type,
            mode=selected_mode,
            archive_missing=archive_missing,
            vessel_id=vessel_id,
            raw_rows=raw_rows,
            report=report,
            original_file_bytes=payload,
            original_file_name=file_name,
            created_by=user_id,
        )
        LOGGER.info(
            "Dry run for %s upload '%s': %s row(s), %s error(s).",
            selected_type.value,
            file_name,
            len(raw_rows),
            report.summary.errors,
            extra={
                "event": "bulk_dry_run",
                "entity_type": selected_type.value,
                "mode": selected_mode.value,
                "vessel_id": vessel_id,
                "user_id": user_id,
                "row_count": len(raw_rows),
                **report.summary.to_dict(),
            },
        )
        return DryRunResult(token=token, report=report)

    def commit(
        self,
        token: str,
        vessel_id: str = "",
        user_id: str = "",
        *,
        entity_type: EntityType | str | None = None,
        mode: ImportMode | str | None = None,
    ) -> CommitResult:
        session = self.store.get(token)
        if not session.report.is_clean:
            raise ValidationBlockedError(session.token, session.report.summary.errors)
        if vessel_id and str(vessel_id) != session.vessel_id:
            raise ImportSessionMismatchError("vesselId", session.vessel_id, str(vessel_id))
        if entity_type:
            requested_type = EntityType.parse(entity_type)
            if requested_type != session.entity_type:
                raise ImportSessionMismatchError("type", session.entity_type.value, requested_type.value)
        if mode:
            requested_mode = ImportMode.parse(mode)
            if requested_mode != session.mode:
                raise ImportSessionMismatchError("mode", session.mode.value, requested_mode.value)

        session = self.store.consume(token)
        started_at = datetime.now(timezone.utc)
        outcome = self.committer.apply(session, actor=user_id)
        failures = outcome_failures(outcome)
        history_id = self.ledger.record(
            entity_type=session.entity_type,
            mode=session.mode,
            archive_missing=session.archive_missing,
            user_id=user_id,
            vessel_id=session.vessel_id,
            outcome=outcome,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            status="partial" if failures else "success",
            original_file=session.original_file_bytes,
            original_file_name=session.original_file_name,
        )
        LOGGER.info(
            "Committed %s import %s: %s of %s row(s) written, %s archived.",
            session.entity_type.value,
            history_id,
            outcome.created + outcome.updated,
            outcome.processed,
            outcome.archived,
            extra={
                "event": "bulk_commit",
                "history_id": history_id,
                "entity_type": session.entity_type.value,
                "mode": session.mode.value,
                "vessel_id": session.vessel_id,
                "user_id": user_id,
                **outcome.count_fields(),
            },
        )
        if failures:
            raise StorageWriteError(
                f"{len(failures)} storage write(s) failed during import.",
                failures=failures,
                outcome=outcome,
                history_id=history_id,
            )
        return CommitResult(outcome=outcome, history_id=history_id)

    def error_report_csv(self, token: str) -> bytes:
        session = self.store.get(token)
        stream = io.StringIO()
        writer = csv.writer(stream, lineterminator="\n")
        writer.writerow(["Row", "Status", "Message"])
        if not session.report.rows and session.report.summary.errors:
            writer.writerow(["", "error", EMPTY_FILE_MESSAGE])
        for result in session.report.rows:
            for message in result.messages:
                writer.writerow([result.row_number, result.status.value, message])
        return stream.getvalue().encode("utf-8")

    def discard_dry_run(self, token: str) -> None:
        """Drop a live dry run so its token can no longer be committed."""
        session = self.store.get(token)
        self.store.discard(token)
        LOGGER.info(
            "Discarded %s dry run for vessel '%s'.",
            session.entity_type.value,
            session.vessel_id,
            extra={"event": "bulk_dry_run_discarded", "entity_type": session.entity_type.value},
        )

    def history(
        self,
        entity_type: EntityType | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> HistoryPage:
        if limit is None:
            return self.ledger.list(entity_type, offset=offset)
        return self.ledger.list(entity_type, limit=limit, offset=offset)

    def history_file(self, history_id: str, file_kind: str) -> HistoryFile | None:
        return self.ledger.get_file(history_id, file_kind)

    def health(self) -> dict[str, Any]:
        return {"sessions": len(self.store), "history": len(self.ledger)}
