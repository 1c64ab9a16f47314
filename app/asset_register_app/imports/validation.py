"""Row validation and normalization.

``validate_rows`` is pure: the rule set comes from the template registry and
any storage context (known reference codes) is passed in by the caller.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from asset_register_app.core.defaults import DEFAULT_REFERENCE_POLICY
from asset_register_app.core.errors import EmptyFileError, FieldValidationError
from asset_register_app.imports.models import (
    EntityType,
    ImportMode,
    RawRow,
    RowStatus,
    RowValidationResult,
    ValidationReport,
    ValidationSummary,
)
from asset_register_app.imports.templates import (
    DATE,
    ENUM,
    NUMBER,
    REFERENCE,
    ColumnRule,
    TemplateDefinition,
    get_template,
)

EMPTY_FILE_MESSAGE = EmptyFileError.message

_DATE_FORMATS = ("%d-%m-%Y", "%d/%m/%Y", "%Y-%m-%d")
_ISO_WITH_TIME = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?$")


class _RowCheck:
    def __init__(self, row_number: int) -> None:
        self.row_number = row_number
        self.errors: list[FieldValidationError] = []
        self.warnings: list[str] = []
        self.normalized: dict[str, Any] = {}

    def error(self, message: str, *, header: str = "") -> None:
        self.errors.append(FieldValidationError(self.row_number, header, message))

    def warn(self, message: str) -> None:
        self.warnings.append(f"Row {self.row_number}: {message}")

    def result(self) -> RowValidationResult:
        if self.errors:
            status = RowStatus.ERROR
        elif self.warnings:
            status = RowStatus.WARNING
        else:
            status = RowStatus.OK
        return RowValidationResult(
            row_number=self.row_number,
            status=status,
            messages=tuple(str(item) for item in self.errors) + tuple(self.warnings),
            normalized=dict(self.normalized),
        )


def parse_number(value: str) -> float | None:
    text = str(value).strip()
    # float() accepts "1_000"; uploads must not.
    if "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_date(value: str) -> date | None:
    cleaned = str(value or "").strip()
    match = _ISO_WITH_TIME.match(cleaned)
    if match:
        cleaned = match.group(1)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def _canonical_choice(value: str, allowed: Iterable[str]) -> str | None:
    folded = value.strip().casefold()
    for choice in allowed:
        if choice.casefold() == folded:
            return choice
    return None


def _check_number(check: _RowCheck, rule: ColumnRule, value: str) -> None:
    number = parse_number(value)
    if rule.min_value is None:
        if number is None:
            check.error(f"{rule.header} must be a number", header=rule.header)
            return
    else:
        below = number is None or number < rule.min_value or (not rule.allow_zero and number <= rule.min_value)
        if below:
            requirement = "a non-negative number" if rule.allow_zero else "a positive number"
            check.error(f"{rule.header} must be {requirement}", header=rule.header)
            return
    check.normalized[rule.header] = int(number) if number.is_integer() else number


def _check_reference(
    check: _RowCheck,
    rule: ColumnRule,
    value: str,
    *,
    reference_policy: str,
    known: set[str],
) -> None:
    code = value.strip()
    if reference_policy != "presence" and code not in known:
        target = rule.reference.value if rule.reference is not None else "record"
        message = f"{rule.header} '{code}' does not match an existing {target}"
        if reference_policy == "error":
            check.error(message, header=rule.header)
            return
        check.warn(message)
    check.normalized[rule.header] = code


def _check_field(
    check: _RowCheck,
    rule: ColumnRule,
    raw_value: str,
    *,
    reference_policy: str,
    known: set[str],
) -> None:
    value = raw_value.strip()
    if not value:
        if rule.required:
            check.error(f"{rule.header} is required", header=rule.header)
        return

    if rule.kind == ENUM:
        choice = _canonical_choice(value, rule.allowed)
        if choice is None:
            check.error(f"Invalid {rule.header}. Allowed: {', '.join(rule.allowed)}", header=rule.header)
            return
        check.normalized[rule.header] = choice
    elif rule.kind == NUMBER:
        _check_number(check, rule, value)
    elif rule.kind == DATE:
        parsed = parse_date(value)
        if parsed is None:
            check.error(f"{rule.header} must be a date in DD-MM-YYYY format", header=rule.header)
            return
        check.normalized[rule.header] = parsed
    elif rule.kind == REFERENCE:
        _check_reference(check, rule, value, reference_policy=reference_policy, known=known)
    else:
        check.normalized[rule.header] = value


def _known_codes(
    template: TemplateDefinition,
    raw_rows: list[RawRow],
    known_references: Mapping[EntityType, Iterable[str]] | None,
) -> dict[EntityType, set[str]]:
    known: dict[EntityType, set[str]] = {
        entity: {str(code).strip() for code in codes if str(code).strip()}
        for entity, codes in (known_references or {}).items()
    }
    # Rows in the same upload may reference each other (component parents).
    key_header = template.natural_key_rule.header
    in_file = {row.get(key_header).strip() for row in raw_rows if row.get(key_header).strip()}
    known.setdefault(template.entity_type, set()).update(in_file)
    return known


def validate_rows(
    entity_type: EntityType | str,
    raw_rows: list[RawRow],
    mode: ImportMode | str = ImportMode.ADD,
    vessel_id: str = "",
    *,
    reference_policy: str = DEFAULT_REFERENCE_POLICY,
    known_references: Mapping[EntityType, Iterable[str]] | None = None,
) -> ValidationReport:
    """Validate raw rows against the entity type's column rules.

    ``mode`` and ``vessel_id`` are accepted for the session record; neither
    changes the per-field rules.
    """
    template = get_template(entity_type)
    ImportMode.parse(mode)
    rows = list(raw_rows or [])
    if not rows:
        return ValidationReport(columns=(), summary=ValidationSummary(errors=1), rows=())

    known = _known_codes(template, rows, known_references)
    key_header = template.natural_key_rule.header
    first_seen: dict[str, int] = {}
    results: list[RowValidationResult] = []

    for raw in rows:
        check = _RowCheck(raw.index)
        for rule in template.columns:
            _check_field(
                check,
                rule,
                raw.get(rule.header),
                reference_policy=reference_policy,
                known=known.get(rule.reference, set()) if rule.reference is not None else set(),
            )

        key = raw.get(key_header).strip()
        if key:
            if key in first_seen:
                check.error(
                    f"Duplicate {key_header} '{key}' (first seen in row {first_seen[key]})",
                    header=key_header,
                )
            else:
                first_seen[key] = raw.index

        for header, value in raw.values.items():
            if template.rule_for(header) is None and str(value or "").strip():
                check.normalized[header] = value

        results.append(check.result())

    summary = ValidationSummary(
        ok=sum(1 for item in results if item.status == RowStatus.OK),
        warnings=sum(1 for item in results if item.status == RowStatus.WARNING),
        errors=sum(1 for item in results if item.has_errors),
    )
    return ValidationReport(columns=tuple(rows[0].headers), summary=summary, rows=tuple(results))
