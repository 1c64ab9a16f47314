"""Typed rows handed to the committer.

A clean ``normalized`` map (keyed by template header) is turned into a
``ComponentRow``, ``SpareRow`` or ``StoreRow``. Only the committer sees these;
the preview keeps the header-keyed maps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union

from asset_register_app.imports.models import EntityType
from asset_register_app.imports.templates import get_template


def _record_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: _record_value(value) for key, value in values.items() if value not in (None, "")}


@dataclass(frozen=True)
class ComponentRow:
    row_number: int
    code: str
    fields: dict[str, Any] = field(default_factory=dict)
    metrics: tuple[dict[str, Any], ...] = ()
    work_orders: tuple[dict[str, Any], ...] = ()
    spares: tuple[dict[str, Any], ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    entity_type = EntityType.COMPONENT

    @property
    def natural_key(self) -> str:
        return self.code

    def to_record(self) -> dict[str, Any]:
        record = _compact(self.fields)
        record["code"] = self.code
        if self.metrics:
            record["metrics"] = [_compact(item) for item in self.metrics]
        if self.work_orders:
            record["work_orders"] = [_compact(item) for item in self.work_orders]
        if self.spares:
            record["spares"] = [_compact(item) for item in self.spares]
        if self.extra:
            record["extra"] = dict(self.extra)
        return record


@dataclass(frozen=True)
class SpareRow:
    row_number: int
    code: str
    fields: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    entity_type = EntityType.SPARE

    @property
    def natural_key(self) -> str:
        return self.code

    def to_record(self) -> dict[str, Any]:
        record = _compact(self.fields)
        record["code"] = self.code
        if self.extra:
            record["extra"] = dict(self.extra)
        return record


@dataclass(frozen=True)
class StoreRow:
    row_number: int
    code: str
    fields: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    entity_type = EntityType.STORE

    @property
    def natural_key(self) -> str:
        return self.code

    def to_record(self) -> dict[str, Any]:
        record = _compact(self.fields)
        record["code"] = self.code
        if self.extra:
            record["extra"] = dict(self.extra)
        return record


TypedRow = Union[ComponentRow, SpareRow, StoreRow]


def _split_normalized(
    entity_type: EntityType,
    normalized: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, dict[int, dict[str, Any]]], dict[str, Any]]:
    template = get_template(entity_type)
    fields: dict[str, Any] = {}
    groups: dict[str, dict[int, dict[str, Any]]] = {}
    extra: dict[str, Any] = {}
    for header, value in normalized.items():
        rule = template.rule_for(header)
        if rule is None:
            extra[header] = value
            continue
        if rule.group:
            groups.setdefault(rule.group, {}).setdefault(rule.group_index, {})[rule.attribute] = value
            continue
        fields[rule.attribute] = value
    return fields, groups, extra


def _ordered_groups(groups: dict[str, dict[int, dict[str, Any]]], name: str) -> tuple[dict[str, Any], ...]:
    items = groups.get(name) or {}
    return tuple(items[index] for index in sorted(items) if any(v not in (None, "") for v in items[index].values()))


def build_typed_row(entity_type: EntityType | str, row_number: int, normalized: dict[str, Any]) -> TypedRow:
    selected = EntityType.parse(entity_type)
    fields, groups, extra = _split_normalized(selected, normalized)
    code = str(fields.pop("code", "") or "").strip()
    if selected == EntityType.COMPONENT:
        return ComponentRow(
            row_number=row_number,
            code=code,
            fields=fields,
            metrics=_ordered_groups(groups, "metrics"),
            work_orders=_ordered_groups(groups, "work_orders"),
            spares=_ordered_groups(groups, "spares"),
            extra=extra,
        )
    if selected == EntityType.SPARE:
        return SpareRow(row_number=row_number, code=code, fields=fields, extra=extra)
    return StoreRow(row_number=row_number, code=code, fields=fields, extra=extra)
