from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from asset_register_app.core.errors import EmptyFileError  # noqa: E402
from asset_register_app.imports.models import EntityType, RawRow, RowStatus  # noqa: E402
from asset_register_app.imports.templates import COMPONENT_CATEGORIES, get_template  # noqa: E402
from asset_register_app.imports.validation import EMPTY_FILE_MESSAGE, parse_date, parse_number, validate_rows  # noqa: E402


def _with(entity_type: str, index: int = 1, values: dict[str, str] | None = None) -> RawRow:
    base = dict(zip(get_template(entity_type).headers, get_template(entity_type).example_row))
    base.update(values or {})
    return RawRow(index=index, values=base)


@pytest.mark.parametrize("entity_type", ["component", "spare", "store"])
def test_empty_upload_reports_single_error(entity_type: str) -> None:
    report = validate_rows(entity_type, [])

    assert report.summary.errors == 1
    assert report.rows == ()
    assert report.columns == ()
    assert report.is_clean is False
    assert EMPTY_FILE_MESSAGE == str(EmptyFileError())


def test_missing_required_field_is_an_error_and_not_normalized() -> None:
    report = validate_rows("spare", [_with("spare", values={"Part Code": "   "})])

    row = report.rows[0]
    assert row.status == RowStatus.ERROR
    assert "Part Code" not in row.normalized
    assert "Row 1: Part Code is required" in row.messages


def test_enum_values_are_normalized_to_canonical_casing() -> None:
    raw = _with(
        "store",
        values={
            "Type": "  lubes ",
            "Stores Category": "GENERAL STORES",
            "UOM": "KG",
        },
    )
    spare = _with("spare", values={"Critical (Yes/No)": "yes", "UOM": "Pcs"})

    store_row = validate_rows("store", [raw]).rows[0]
    spare_row = validate_rows("spare", [spare]).rows[0]

    assert store_row.status == RowStatus.OK
    assert store_row.normalized["Type"] == "Lubes"
    assert store_row.normalized["Stores Category"] == "General Stores"
    assert store_row.normalized["UOM"] == "kg"
    assert spare_row.normalized["Critical (Yes/No)"] == "Yes"
    assert spare_row.normalized["UOM"] == "pcs"


def test_unknown_component_category_lists_allowed_values() -> None:
    report = validate_rows("component", [_with("component", values={"Component Category": "Unknown Category"})])

    row = report.rows[0]
    assert row.status == RowStatus.ERROR
    assert "Component Category" not in row.normalized
    assert row.messages == (f"Row 1: Invalid Component Category. Allowed: {', '.join(COMPONENT_CATEGORIES)}",)


def test_negative_min_states_non_negative_requirement() -> None:
    report = validate_rows("spare", [_with("spare", values={"Min": "-1"})])

    row = report.rows[0]
    assert row.status == RowStatus.ERROR
    assert row.messages == ("Row 1: Min must be a non-negative number",)
    assert "Min" not in row.normalized


def test_non_numeric_rob_is_rejected() -> None:
    row = validate_rows("store", [_with("store", values={"ROB": "plenty"})]).rows[0]

    assert row.messages == ("Row 1: ROB must be a non-negative number",)


def test_numbers_normalize_to_int_or_float() -> None:
    row = validate_rows("store", [_with("store", values={"ROB": " 12 ", "Min": "2.5"})]).rows[0]

    assert row.normalized["ROB"] == 12
    assert isinstance(row.normalized["ROB"], int)
    assert row.normalized["Min"] == 2.5


def test_numbers_with_digit_separators_are_rejected() -> None:
    row = validate_rows("spare", [_with("spare", values={"ROB": "1_000", "Min": " 1e3 "})]).rows[0]

    assert parse_number("1_000") is None
    assert row.messages == ("Row 1: ROB must be a non-negative number",)
    assert row.normalized["Min"] == 1000
    assert row.has_errors is True


def test_work_order_frequency_must_be_positive() -> None:
    row = validate_rows("component", [_with("component", values={"WO1 Frequency Value": "0"})]).rows[0]

    assert row.messages == ("Row 1: WO1 Frequency Value must be a positive number",)


def test_metric_values_accept_negative_numbers() -> None:
    row = validate_rows(
        "component",
        [_with("component", values={"Metric1 Name": "Vibration", "Metric1 Value": "-3.5"})],
    ).rows[0]

    assert row.status == RowStatus.OK
    assert row.normalized["Metric1 Value"] == -3.5


def test_dates_accept_day_first_and_iso_forms() -> None:
    row = validate_rows(
        "component",
        [
            _with(
                "component",
                values={"Installation Date": "15/01/2024", "Commissioned Date": "2024-02-01T00:00:00"},
            )
        ],
    ).rows[0]

    assert row.normalized["Installation Date"] == date(2024, 1, 15)
    assert row.normalized["Commissioned Date"] == date(2024, 2, 1)
    assert parse_date("31-02-2024") is None


def test_invalid_date_is_an_error() -> None:
    row = validate_rows("component", [_with("component", values={"Date Updated": "yesterday"})]).rows[0]

    assert row.messages == ("Row 1: Date Updated must be a date in DD-MM-YYYY format",)


def test_empty_optional_fields_are_omitted() -> None:
    row = validate_rows("spare", [_with("spare", values={"Maker": "", "ROB": " "})]).rows[0]

    assert row.status == RowStatus.OK
    assert "Maker" not in row.normalized
    assert "ROB" not in row.normalized


def test_unrecognized_columns_pass_through_unnormalized() -> None:
    raw = _with("store", values={"Custom Note": "  keep as-is "})

    row = validate_rows("store", [raw]).rows[0]

    assert row.normalized["Custom Note"] == "  keep as-is "
    assert row.status == RowStatus.OK


def test_duplicate_natural_key_flags_each_repeat() -> None:
    rows = [
        _with("store", index=1, values={"Item Code": "ST-1"}),
        _with("store", index=2, values={"Item Code": "ST-2"}),
        _with("store", index=3, values={"Item Code": "ST-1"}),
        _with("store", index=4, values={"Item Code": "ST-1"}),
    ]

    report = validate_rows("store", rows)

    assert report.summary.to_dict() == {"ok": 2, "warnings": 0, "errors": 2}
    assert report.rows[2].messages == ("Row 3: Duplicate Item Code 'ST-1' (first seen in row 1)",)
    assert report.rows[3].messages == ("Row 4: Duplicate Item Code 'ST-1' (first seen in row 1)",)


def test_reference_presence_policy_does_not_check_existence() -> None:
    row = validate_rows("spare", [_with("spare", values={"Component Code": "9.9.9"})]).rows[0]

    assert row.status == RowStatus.OK
    assert row.normalized["Component Code"] == "9.9.9"


def test_reference_warn_policy_flags_unknown_component() -> None:
    row = validate_rows(
        "spare",
        [_with("spare", values={"Component Code": "9.9.9"})],
        reference_policy="warn",
        known_references={EntityType.COMPONENT: {"1.1.1"}},
    ).rows[0]

    assert row.status == RowStatus.WARNING
    assert row.normalized["Component Code"] == "9.9.9"
    assert row.messages == ("Row 1: Component Code '9.9.9' does not match an existing component",)


def test_reference_error_policy_rejects_unknown_component() -> None:
    report = validate_rows(
        "spare",
        [
            _with("spare", index=1, values={"Part Code": "SP-1", "Component Code": "1.1.1"}),
            _with("spare", index=2, values={"Part Code": "SP-2", "Component Code": "9.9.9"}),
        ],
        reference_policy="error",
        known_references={EntityType.COMPONENT: ["1.1.1"]},
    )

    assert [row.status for row in report.rows] == [RowStatus.OK, RowStatus.ERROR]
    assert "Component Code" not in report.rows[1].normalized


def test_parent_component_may_be_defined_in_same_upload() -> None:
    report = validate_rows(
        "component",
        [
            _with("component", index=1, values={"Component Code": "1.1"}),
            _with("component", index=2, values={"Component Code": "1.1.1", "Parent Component Code": "1.1"}),
        ],
        reference_policy="error",
        known_references={},
    )

    assert report.summary.errors == 0
    assert report.rows[1].normalized["Parent Component Code"] == "1.1"


def test_columns_follow_first_row_header_order() -> None:
    raw = RawRow(index=1, values={"Item Name": "Rope", "Item Code": "ST-9"})

    report = validate_rows("store", [raw])

    assert report.columns == ("Item Name", "Item Code")
    assert report.rows[0].status == RowStatus.OK


def test_validation_is_deterministic() -> None:
    rows = [_with("spare", values={"Min": "-1"}), _with("spare", index=2, values={"Part Code": "SP-2"})]

    assert validate_rows("spare", rows) == validate_rows("spare", rows)


def test_preview_caps_rows() -> None:
    rows = [_with("store", index=i, values={"Item Code": f"ST-{i}"}) for i in range(1, 6)]

    report = validate_rows("store", rows)

    assert len(report.preview(3)) == 3
    assert report.preview(3)[0]["row"] == 1
