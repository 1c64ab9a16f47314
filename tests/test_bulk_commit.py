from __future__ import annotations

import csv
import io
import logging
import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from asset_register_app.core.config import AppConfig  # noqa: E402
from asset_register_app.core.errors import (  # noqa: E402
    DuplicateRecordError,
    FileParseError,
    ImportSessionMismatchError,
    StorageWriteError,
    TokenNotFoundError,
    UnsupportedFormatError,
    UploadTooLargeError,
    ValidationBlockedError,
)
from asset_register_app.imports.history import ImportHistoryLedger  # noqa: E402
from asset_register_app.imports.models import EntityType, RowStatus  # noqa: E402
from asset_register_app.imports.service import BulkImportService  # noqa: E402
from asset_register_app.imports.session_store import DryRunSessionStore  # noqa: E402
from asset_register_app.storage.repository import InMemoryAssetRepository  # noqa: E402

SPARE_HEADERS = ["Part Code", "Part Name", "Component Code", "UOM", "Min", "ROB"]


def _csv(headers: list[str], rows: list[list[str]]) -> bytes:
    stream = io.StringIO()
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return stream.getvalue().encode("utf-8")


def _spares(*codes: str, min_qty: str = "1") -> bytes:
    return _csv(SPARE_HEADERS, [[code, f"Part {code}", "1.1.1", "pcs", min_qty, "4"] for code in codes])


def _service(repo: InMemoryAssetRepository | None = None, **config_overrides) -> BulkImportService:
    return BulkImportService(AppConfig(**config_overrides), repo or InMemoryAssetRepository())


def _seed_spares(repo: InMemoryAssetRepository, vessel_id: str, *codes: str) -> None:
    for code in codes:
        repo.create(EntityType.SPARE, vessel_id, {"code": code, "name": f"Seed {code}", "rob": 1}, actor="seed")


def test_dry_run_does_not_write() -> None:
    repo = InMemoryAssetRepository()
    service = _service(repo)

    result = service.dry_run("spare", "add", False, "V1", _spares("SP-1", "SP-2"), "spares.csv", "chief")

    assert result.report.summary.ok == 2
    assert repo.list_records(EntityType.SPARE, "V1").empty
    assert service.store.get(result.token).created_by == "chief"


def test_add_commit_creates_every_row_and_records_history() -> None:
    repo = InMemoryAssetRepository()
    service = _service(repo)
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1", "SP-2", "SP-3"), "spares.csv")

    result = service.commit(dry.token, "V1", "chief")

    outcome = result.outcome
    assert outcome.counts() == {"created": 3, "updated": 0, "skipped": 0, "archived": 0, "failed": 0}
    assert outcome.created + outcome.updated + outcome.skipped == len(dry.report.rows)
    assert [item.row_number for item in outcome.row_outcomes] == [1, 2, 3]
    stored = repo.get_by_key(EntityType.SPARE, "V1", "SP-2")
    assert stored["name"] == "Part SP-2"
    assert stored["min_qty"] == 1
    assert stored["uom"] == "pcs"
    assert stored["created_by"] == "chief"

    record = service.ledger.get(result.history_id)
    assert record.status == "success"
    assert record.original_file_name == "spares.csv"
    assert record.user_id == "chief"


def test_commit_succeeds_exactly_once() -> None:
    service = _service()
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")

    service.commit(dry.token, "V1", "chief")

    with pytest.raises(TokenNotFoundError):
        service.commit(dry.token, "V1", "chief")
    assert len(service.ledger) == 1


def test_commit_with_validation_errors_is_blocked_without_effect() -> None:
    repo = InMemoryAssetRepository()
    service = _service(repo)
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1", "SP-2", min_qty="-1"), "spares.csv")

    with pytest.raises(ValidationBlockedError) as excinfo:
        service.commit(dry.token, "V1", "chief")

    assert excinfo.value.error_count == 2
    assert repo.list_records(EntityType.SPARE, "V1").empty
    assert len(service.ledger) == 0
    assert service.store.get(dry.token).token == dry.token


def test_empty_upload_cannot_be_committed() -> None:
    service = _service()
    dry = service.dry_run("store", "add", False, "V1", b"Item Code,Item Name\n", "stores.csv")

    assert dry.report.summary.errors == 1
    with pytest.raises(ValidationBlockedError):
        service.commit(dry.token, "V1", "chief")


def test_upsert_updates_existing_part_code() -> None:
    repo = InMemoryAssetRepository()
    _seed_spares(repo, "V1", "SP-1")
    service = _service(repo)
    dry = service.dry_run("spare", "upsert", False, "V1", _spares("SP-1", "SP-9"), "spares.csv")

    outcome = service.commit(dry.token, "V1", "chief").outcome

    assert outcome.updated == 1
    assert outcome.created == 1
    updated = repo.get_by_key(EntityType.SPARE, "V1", "SP-1")
    assert updated["name"] == "Part SP-1"
    assert updated["rob"] == 4
    assert updated["created_by"] == "seed"
    assert updated["updated_by"] == "chief"


def test_update_mode_skips_unknown_keys() -> None:
    repo = InMemoryAssetRepository()
    _seed_spares(repo, "V1", "SP-1")
    service = _service(repo)
    dry = service.dry_run("spare", "update", False, "V1", _spares("SP-1", "SP-2"), "spares.csv")

    outcome = service.commit(dry.token, "V1", "chief").outcome

    assert outcome.counts() == {"created": 0, "updated": 1, "skipped": 1, "archived": 0, "failed": 0}
    assert repo.get_by_key(EntityType.SPARE, "V1", "SP-2") is None
    assert outcome.row_outcomes[1].action == "skipped"


def test_archive_missing_archives_records_absent_from_file() -> None:
    repo = InMemoryAssetRepository()
    _seed_spares(repo, "V1", "SP-1", "SP-2", "SP-3")
    _seed_spares(repo, "V2", "SP-7")
    service = _service(repo)
    dry = service.dry_run("spare", "upsert", True, "V1", _spares("SP-1", "SP-2"), "spares.csv")

    outcome = service.commit(dry.token, "V1", "chief").outcome

    assert outcome.archived == 1
    assert outcome.updated == 2
    assert repo.list_keys(EntityType.SPARE, "V1") == {"SP-1", "SP-2"}
    archived = repo.list_records(EntityType.SPARE, "V1", include_archived=True)
    row = archived[archived["code"] == "SP-3"].iloc[0]
    assert bool(row["archived"]) is True
    assert row["archived_by"] == "chief"
    assert repo.list_keys(EntityType.SPARE, "V2") == {"SP-7"}


def test_add_duplicate_fails_row_but_continues_and_raises_after_history() -> None:
    repo = InMemoryAssetRepository()
    _seed_spares(repo, "V1", "SP-2")
    service = _service(repo)
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1", "SP-2", "SP-3"), "spares.csv")

    with pytest.raises(StorageWriteError) as excinfo:
        service.commit(dry.token, "V1", "chief")

    error = excinfo.value
    assert error.outcome.created == 2
    assert error.outcome.failed == 1
    assert error.outcome.processed == 3
    assert error.failures[0]["row"] == 2
    assert error.failures[0]["key"] == "SP-2"
    assert service.ledger.get(error.history_id).status == "partial"
    assert repo.get_by_key(EntityType.SPARE, "V1", "SP-3") is not None
    with pytest.raises(TokenNotFoundError):
        service.commit(dry.token, "V1", "chief")


class _FailingArchiveRepo(InMemoryAssetRepository):
    def archive_by_keys(self, entity_type, vessel_id, keys, *, actor=""):
        raise RuntimeError("archive backend offline")


def test_archive_failure_is_reported_as_storage_error() -> None:
    repo = _FailingArchiveRepo()
    _seed_spares(repo, "V1", "SP-1", "SP-5")
    service = _service(repo)
    dry = service.dry_run("spare", "upsert", True, "V1", _spares("SP-1"), "spares.csv")

    with pytest.raises(StorageWriteError) as excinfo:
        service.commit(dry.token, "V1", "chief")

    assert excinfo.value.outcome.updated == 1
    assert excinfo.value.outcome.archived == 0
    assert excinfo.value.failures[0]["action"] == "archive_failed"


def test_commit_rejects_mismatched_request_and_keeps_token() -> None:
    service = _service()
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")

    with pytest.raises(ImportSessionMismatchError) as excinfo:
        service.commit(dry.token, "V2", "chief")
    assert excinfo.value.field == "vesselId"

    with pytest.raises(ImportSessionMismatchError):
        service.commit(dry.token, "V1", "chief", entity_type="stores")
    with pytest.raises(ImportSessionMismatchError):
        service.commit(dry.token, "V1", "chief", mode="upsert")

    assert service.commit(dry.token, "V1", "chief", entity_type="spares", mode="add").outcome.created == 1


def test_expired_dry_run_cannot_be_committed() -> None:
    now = [0.0]
    store = DryRunSessionStore(ttl_seconds=3600, clock=lambda: now[0])
    ledger = ImportHistoryLedger()
    service = BulkImportService(AppConfig(), InMemoryAssetRepository(), store=store, ledger=ledger)

    assert service.store is store
    assert service.ledger is ledger
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")

    now[0] = 3600.0

    with pytest.raises(TokenNotFoundError):
        service.commit(dry.token, "V1", "chief")


def test_component_rows_carry_repeated_groups_into_storage() -> None:
    repo = InMemoryAssetRepository()
    service = _service(repo)
    headers = [
        "Component Code",
        "Component Category",
        "Installation Date",
        "Metric1 Name",
        "Metric1 Value",
        "WO2 Title",
        "WO2 Frequency Type (Calendar/Running Hours)",
        "WO2 Frequency Value",
        "SP1 Part Code",
        "SP1 Min",
    ]
    content = _csv(
        headers,
        [["2.1", "deck machinery", "01-03-2021", "Pressure", "7.5", "Grease", "calendar", "30", "SP-10", "3"]],
    )
    dry = service.dry_run("component", "add", False, "V1", content, "components.csv")
    service.commit(dry.token, "V1", "chief")

    stored = repo.get_by_key(EntityType.COMPONENT, "V1", "2.1")
    assert stored["category"] == "Deck Machinery"
    assert stored["installation_date"] == "2021-03-01"
    assert stored["metrics"] == [{"name": "Pressure", "value": 7.5}]
    assert stored["work_orders"] == [{"title": "Grease", "frequency_type": "Calendar", "frequency_value": 30}]
    assert stored["spares"] == [{"part_code": "SP-10", "min_qty": 3}]


def test_reference_error_policy_uses_repository_components() -> None:
    repo = InMemoryAssetRepository()
    repo.create(EntityType.COMPONENT, "V1", {"code": "1.1.1", "category": "Hull"})
    service = _service(repo, reference_policy="error")
    content = _csv(SPARE_HEADERS, [["SP-1", "Gasket", "1.1.1", "pcs", "1", "1"], ["SP-2", "Seal", "4.4", "pcs", "1", "1"]])

    report = service.dry_run("spare", "add", False, "V1", content, "spares.csv").report

    assert [row.status for row in report.rows] == [RowStatus.OK, RowStatus.ERROR]


def test_dry_run_rejects_oversize_unreadable_and_unsupported_uploads() -> None:
    service = _service(max_upload_bytes=10)

    with pytest.raises(UploadTooLargeError):
        service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")
    with pytest.raises(FileParseError):
        service.dry_run("spare", "add", False, "V1", b"", "spares.xlsx")
    with pytest.raises(UnsupportedFormatError):
        service.dry_run("spare", "add", False, "V1", b"x", "spares.pdf")


def test_hint_row_in_uploaded_template_is_ignored() -> None:
    service = _service()
    template_rows = [
        ["Part Code", "Part Name", "Component Code"],
        ["Required, Unique", "Required", "Required, Must exist"],
        ["SP-1", "Gasket", "1.1.1"],
    ]
    content = _csv(template_rows[0], template_rows[1:])

    report = service.dry_run("spare", "add", False, "V1", content, "spares.csv").report

    assert report.summary.to_dict() == {"ok": 1, "warnings": 0, "errors": 0}
    assert report.rows[0].row_number == 2


def test_error_report_lists_every_message() -> None:
    service = _service()
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1", "SP-2", min_qty="-1"), "spares.csv")

    lines = service.error_report_csv(dry.token).decode("utf-8").splitlines()

    assert lines[0] == "Row,Status,Message"
    assert lines[1] == "1,error,Row 1: Min must be a non-negative number"
    assert len(lines) == 3


def test_repository_rejects_duplicate_create() -> None:
    repo = InMemoryAssetRepository()
    repo.create(EntityType.STORE, "V1", {"code": "ST-1"})

    with pytest.raises(DuplicateRecordError):
        repo.create(EntityType.STORE, "V1", {"code": "ST-1"})


def test_repository_archive_is_soft_and_hides_record() -> None:
    repo = InMemoryAssetRepository()
    _seed_spares(repo, "V1", "SP-1", "SP-2")

    archived = repo.archive_by_keys(EntityType.SPARE, "V1", ["SP-1", "SP-9"], actor="chief")

    assert archived == 1
    assert repo.get_by_key(EntityType.SPARE, "V1", "SP-1") is None
    assert repo.list_keys(EntityType.SPARE, "V1") == {"SP-2"}

    frame = repo.list_records(EntityType.SPARE, "V1", include_archived=True)
    row = frame[frame["code"] == "SP-1"].iloc[0]
    assert bool(row["archived"]) is True
    assert row["archived_by"] == "chief"
    assert repo.get_by_key(EntityType.SPARE, "V1", "SP-2")["name"] == "Seed SP-2"


def test_zero_byte_csv_is_an_empty_file_result() -> None:
    service = _service()

    dry = service.dry_run("spare", "add", False, "V1", b"", "spares.csv")

    assert dry.report.summary.errors == 1
    assert dry.report.rows == ()
    assert dry.report.columns == ()
    assert service.error_report_csv(dry.token).decode("utf-8").splitlines() == [
        "Row,Status,Message",
        ",error,File contains no data rows.",
    ]
    with pytest.raises(ValidationBlockedError):
        service.commit(dry.token, "V1", "chief")


def test_commit_with_info_logging_returns_outcome_and_logs_counts(caplog: pytest.LogCaptureFixture) -> None:
    repo = InMemoryAssetRepository()
    service = _service(repo)
    app_logger = logging.getLogger("asset_register_app")
    app_logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger="asset_register_app")
    try:
        dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")
        result = service.commit(dry.token, "V1", "chief")
    finally:
        app_logger.removeHandler(caplog.handler)

    assert result.outcome.created == 1
    assert result.history_id
    assert repo.get_by_key(EntityType.SPARE, "V1", "SP-1") is not None

    events = {getattr(record, "event", ""): record for record in caplog.records}
    commit_record = events["bulk_commit"]
    assert commit_record.created_count == 1
    assert commit_record.processed_count == 1
    assert isinstance(commit_record.created, float)
    assert events["import_history_recorded"].history_id == result.history_id


def test_discarded_dry_run_cannot_be_committed() -> None:
    service = _service()
    dry = service.dry_run("spare", "add", False, "V1", _spares("SP-1"), "spares.csv")

    service.discard_dry_run(dry.token)

    with pytest.raises(TokenNotFoundError):
        service.commit(dry.token, "V1", "chief")
    with pytest.raises(TokenNotFoundError):
        service.discard_dry_run(dry.token)
