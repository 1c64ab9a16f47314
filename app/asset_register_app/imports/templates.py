"""Template registry for bulk imports.

Each entity type declares its columns once as ``ColumnRule`` values. The
downloadable template (headers, the "valid values" hint row, the example row
and the ``Meta`` sheet) and the row validator are both derived from that
declaration.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from openpyxl import Workbook

from asset_register_app.core.defaults import DEFAULT_TEMPLATE_VERSION
from asset_register_app.imports.models import EntityType, RawRow

TEXT = "text"
ENUM = "enum"
NUMBER = "number"
DATE = "date"
REFERENCE = "reference"

COMPONENT_CATEGORIES = (
    "Ship's Structure",
    "Deck Machinery",
    "Engine Department",
    "Safety Equipment",
    "Accommodation",
    "Hull",
    "Equipment for Cargo",
    "Ship General",
)
UOM_LIST = ("pcs", "set", "ltr", "kg", "m", "box", "roll", "pack", "kit", "other")
STORES_CATEGORIES = ("General Stores", "Electrical", "Mechanical", "Safety", "Consumables")
STORE_TYPES = ("Stores", "Lubes", "Chemicals", "Others")
YES_NO = ("Yes", "No")
FREQUENCY_TYPES = ("Calendar", "Running Hours")

METRIC_GROUPS = 5
WORK_ORDER_GROUPS = 10
SPARE_GROUPS = 10

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ColumnRule:
    header: str
    attribute: str
    kind: str = TEXT
    required: bool = False
    natural_key: bool = False
    allowed: tuple[str, ...] = ()
    min_value: float | None = None
    allow_zero: bool = True
    reference: EntityType | None = None
    group: str = ""
    group_index: int = 0

    @property
    def hint(self) -> str:
        if self.natural_key:
            return "Required, Unique"
        if self.kind == ENUM:
            if self.allowed == YES_NO:
                return "Yes/No"
            return "|".join(self.allowed)
        if self.kind == NUMBER:
            if self.min_value is None:
                return "Number"
            return "Number >= 0" if self.allow_zero else "Number > 0"
        if self.kind == DATE:
            return "DD-MM-YYYY"
        if self.kind == REFERENCE:
            return "Required, Must exist" if self.required else "Existing Code or blank"
        return "Required" if self.required else "Text"


@dataclass(frozen=True)
class TemplateDefinition:
    entity_type: EntityType
    columns: tuple[ColumnRule, ...]
    example: dict[str, str]
    version: str = DEFAULT_TEMPLATE_VERSION
    _by_header: dict[str, ColumnRule] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_header.update({rule.header: rule for rule in self.columns})

    @property
    def headers(self) -> list[str]:
        return [rule.header for rule in self.columns]

    @property
    def hint_row(self) -> list[str]:
        return [rule.hint for rule in self.columns]

    @property
    def example_row(self) -> list[str]:
        return [str(self.example.get(rule.header, "") or "") for rule in self.columns]

    @property
    def natural_key_rule(self) -> ColumnRule:
        return next(rule for rule in self.columns if rule.natural_key)

    def rule_for(self, header: str) -> ColumnRule | None:
        return self._by_header.get(header)

    def example_raw_row(self, index: int = 1) -> RawRow:
        return RawRow(index=index, values=dict(zip(self.headers, self.example_row)))


def domain_metadata() -> dict[str, tuple[str, ...]]:
    return {
        "Component Categories": COMPONENT_CATEGORIES,
        "UOM List": UOM_LIST,
        "Stores Categories": STORES_CATEGORIES,
        "Stores Types": STORE_TYPES,
        "Yes/No": YES_NO,
        "Work Order Frequency Types": FREQUENCY_TYPES,
    }


def _yes_no(header: str, attribute: str, **kwargs: Any) -> ColumnRule:
    return ColumnRule(header=header, attribute=attribute, kind=ENUM, allowed=YES_NO, **kwargs)


def _non_negative(header: str, attribute: str, **kwargs: Any) -> ColumnRule:
    return ColumnRule(header=header, attribute=attribute, kind=NUMBER, min_value=0.0, **kwargs)


def _component_columns() -> tuple[ColumnRule, ...]:
    columns = [
        ColumnRule("Component Code", "code", required=True, natural_key=True),
        ColumnRule("Component Name", "name"),
        ColumnRule("Component Category", "category", kind=ENUM, required=True, allowed=COMPONENT_CATEGORIES),
        ColumnRule("Maker", "maker"),
        ColumnRule("Model", "model"),
        ColumnRule("Serial No", "serial_no"),
        ColumnRule("Drawing No", "drawing_no"),
        ColumnRule("Location", "location"),
        _yes_no("Critical (Yes/No)", "critical"),
        _yes_no("Condition Based (Yes/No)", "condition_based"),
        ColumnRule("Installation Date", "installation_date", kind=DATE),
        ColumnRule("Commissioned Date", "commissioned_date", kind=DATE),
        ColumnRule("Rating", "rating"),
        _non_negative("No of Units", "units"),
        ColumnRule("Eqpt / System Department", "department"),
        ColumnRule(
            "Parent Component Code",
            "parent_code",
            kind=REFERENCE,
            reference=EntityType.COMPONENT,
        ),
        ColumnRule("Dimensions/Size", "dimensions"),
        ColumnRule("Notes", "notes"),
        _non_negative("Running Hours", "running_hours"),
        ColumnRule("Date Updated", "running_hours_updated", kind=DATE),
    ]
    for i in range(1, METRIC_GROUPS + 1):
        columns.extend(
            [
                ColumnRule(f"Metric{i} Name", "name", group="metrics", group_index=i),
                ColumnRule(f"Metric{i} Value", "value", kind=NUMBER, group="metrics", group_index=i),
                ColumnRule(f"Metric{i} Unit", "unit", group="metrics", group_index=i),
            ]
        )
    for i in range(1, WORK_ORDER_GROUPS + 1):
        columns.extend(
            [
                ColumnRule(f"WO{i} Title", "title", group="work_orders", group_index=i),
                ColumnRule(
                    f"WO{i} Frequency Type (Calendar/Running Hours)",
                    "frequency_type",
                    kind=ENUM,
                    allowed=FREQUENCY_TYPES,
                    group="work_orders",
                    group_index=i,
                ),
                ColumnRule(
                    f"WO{i} Frequency Value",
                    "frequency_value",
                    kind=NUMBER,
                    min_value=0.0,
                    allow_zero=False,
                    group="work_orders",
                    group_index=i,
                ),
                ColumnRule(
                    f"WO{i} Initial Next Due (Date)",
                    "initial_next_due",
                    kind=DATE,
                    group="work_orders",
                    group_index=i,
                ),
                ColumnRule(f"WO{i} Assigned To (Rank)", "assigned_to", group="work_orders", group_index=i),
            ]
        )
    for i in range(1, SPARE_GROUPS + 1):
        columns.extend(
            [
                ColumnRule(f"SP{i} Part Code", "part_code", group="spares", group_index=i),
                ColumnRule(f"SP{i} Part Name", "part_name", group="spares", group_index=i),
                _non_negative(f"SP{i} Min", "min_qty", group="spares", group_index=i),
                _yes_no(f"SP{i} Critical (Yes/No)", "critical", group="spares", group_index=i),
                ColumnRule(f"SP{i} Location", "location", group="spares", group_index=i),
            ]
        )
    return tuple(columns)


def _spare_columns() -> tuple[ColumnRule, ...]:
    return (
        ColumnRule("Part Code", "code", required=True, natural_key=True),
        ColumnRule("Part Name", "name", required=True),
        ColumnRule(
            "Component Code",
            "component_code",
            kind=REFERENCE,
            required=True,
            reference=EntityType.COMPONENT,
        ),
        ColumnRule("UOM", "uom", kind=ENUM, allowed=UOM_LIST),
        _non_negative("Min", "min_qty"),
        _yes_no("Critical (Yes/No)", "critical"),
        _non_negative("ROB", "rob"),
        ColumnRule("Location", "location"),
        ColumnRule("Maker", "maker"),
        ColumnRule("Model", "model"),
        ColumnRule("Remarks", "remarks"),
    )


def _store_columns() -> tuple[ColumnRule, ...]:
    return (
        ColumnRule("Item Code", "code", required=True, natural_key=True),
        ColumnRule("Item Name", "name", required=True),
        ColumnRule("Type", "item_type", kind=ENUM, allowed=STORE_TYPES),
        ColumnRule("Stores Category", "category", kind=ENUM, allowed=STORES_CATEGORIES),
        ColumnRule("UOM", "uom", kind=ENUM, allowed=UOM_LIST),
        _non_negative("ROB", "rob"),
        _non_negative("Min", "min_qty"),
        ColumnRule("Location", "location"),
        ColumnRule("Application Area", "application_area"),
        ColumnRule("Remarks", "remarks"),
    )


_TEMPLATES: dict[EntityType, TemplateDefinition] = {
    EntityType.COMPONENT: TemplateDefinition(
        entity_type=EntityType.COMPONENT,
        columns=_component_columns(),
        example={
            "Component Code": "1.1.1",
            "Component Name": "Main Engine",
            "Component Category": "Engine Department",
            "Maker": "MAN B&W",
            "Model": "S60MC-C",
            "Serial No": "12345",
            "Drawing No": "DRW-001",
            "Location": "Engine Room",
            "Critical (Yes/No)": "Yes",
            "Condition Based (Yes/No)": "Yes",
            "Installation Date": "01-01-2020",
            "Commissioned Date": "15-03-2020",
            "Rating": "15000 kW",
            "No of Units": "1",
            "Eqpt / System Department": "Engineering",
            "Parent Component Code": "",
            "Dimensions/Size": "10m x 5m x 8m",
            "Notes": "Main propulsion engine",
            "Running Hours": "25000",
            "Date Updated": "15-01-2024",
            "WO1 Title": "Cylinder Head Overhaul",
            "WO1 Frequency Type (Calendar/Running Hours)": "Running Hours",
            "WO1 Frequency Value": "8000",
            "WO1 Initial Next Due (Date)": "01-06-2024",
            "WO1 Assigned To (Rank)": "Chief Engineer",
            "SP1 Part Code": "SP-001",
            "SP1 Part Name": "Cylinder Head Gasket",
            "SP1 Min": "2",
            "SP1 Critical (Yes/No)": "Yes",
            "SP1 Location": "Store Room A",
        },
    ),
    EntityType.SPARE: TemplateDefinition(
        entity_type=EntityType.SPARE,
        columns=_spare_columns(),
        example={
            "Part Code": "SP-001",
            "Part Name": "Cylinder Head Gasket",
            "Component Code": "1.1.1",
            "UOM": "pcs",
            "Min": "2",
            "Critical (Yes/No)": "Yes",
            "ROB": "5",
            "Location": "Store Room A",
            "Maker": "MAN B&W",
            "Model": "GS-12345",
            "Remarks": "For main engine only",
        },
    ),
    EntityType.STORE: TemplateDefinition(
        entity_type=EntityType.STORE,
        columns=_store_columns(),
        example={
            "Item Code": "ST-001",
            "Item Name": "Welding Electrodes",
            "Type": "Stores",
            "Stores Category": "General Stores",
            "UOM": "kg",
            "ROB": "50",
            "Min": "20",
            "Location": "Workshop Store",
            "Application Area": "Deck & Engine",
            "Remarks": "AWS E6013 specification",
        },
    ),
}


def get_template(entity_type: EntityType | str) -> TemplateDefinition:
    return _TEMPLATES[EntityType.parse(entity_type)]


def strip_hint_row(entity_type: EntityType | str, rows: list[RawRow]) -> list[RawRow]:
    """Drop a leading row that repeats the template's hint row.

    Filled-in templates are often uploaded with the hint row still in place.
    Remaining rows keep their original indices.
    """
    if not rows:
        return rows
    template = get_template(entity_type)
    first = rows[0]
    compared = 0
    for rule in template.columns:
        if rule.header not in first.values:
            continue
        value = first.get(rule.header).strip()
        if not value:
            continue
        if value != rule.hint:
            return rows
        compared += 1
    if compared == 0:
        return rows
    return rows[1:]


def render_template_workbook(
    entity_type: EntityType | str,
    *,
    generated_at: datetime | None = None,
) -> tuple[str, bytes]:
    template = get_template(entity_type)
    stamp = generated_at or datetime.now(timezone.utc)

    wb = Workbook()
    data_sheet = wb.active
    data_sheet.title = "Data"
    data_sheet.append(template.headers)
    data_sheet.append(template.hint_row)
    data_sheet.append(template.example_row)
    data_sheet.freeze_panes = "A2"

    meta_sheet = wb.create_sheet("Meta")
    meta_sheet.append(["Template Type", template.entity_type.plural])
    meta_sheet.append(["Template Version", template.version])
    meta_sheet.append(["Generated At", stamp.isoformat()])
    meta_sheet.append([])
    for label, values in domain_metadata().items():
        meta_sheet.append([label, *values])

    buffer = io.BytesIO()
    wb.save(buffer)
    return f"{template.entity_type.plural}_template.xlsx", buffer.getvalue()


def render_template_csv(entity_type: EntityType | str) -> tuple[str, bytes]:
    template = get_template(entity_type)
    stream = io.StringIO()
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(template.headers)
    writer.writerow(template.example_row)
    return f"{template.entity_type.plural}_template.csv", stream.getvalue().encode("utf-8")
