# dora_backend/models.py
# Style inventory record: one row per style, editable vs derived columns

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Column, Date, Float, Integer, MetaData, String, Table

PLATFORMS = ("myntra", "nykaa")
SIZES = ("s", "m", "l", "xl")

IDENTITY = "identity"
EDITABLE = "editable"
DERIVED = "derived"

_SA_TYPES = {
    "text": String,
    "int": Integer,
    "float": Float,
    "date": Date,
}


@dataclass(frozen=True)
class ColumnSpec:
    kind: str
    type: str = "float"

    @property
    def editable(self) -> bool:
        return self.kind == EDITABLE


def _editable(t: str) -> ColumnSpec:
    return ColumnSpec(EDITABLE, t)


def _derived(t: str = "float") -> ColumnSpec:
    return ColumnSpec(DERIVED, t)


def _build_columns() -> dict[str, ColumnSpec]:
    cols: dict[str, ColumnSpec] = {"style_id": ColumnSpec(IDENTITY, "text")}

    # identity / descriptive
    for name in ("style_name", "category", "color", "fabric_type", "fabric_type_2", "fabric_type_3"):
        cols[name] = _editable("text")
    cols["launch_date"] = _editable("date")

    # fabric supply
    for name in ("fabric_available_mtr", "fabric_available_mtr_2", "fabric_available_mtr_3"):
        cols[name] = _editable("float")
    cols["fabric_yield_per_unit"] = _editable("float")
    for i in (1, 2, 3):
        cols[f"fabric_yield_per_unit_{i}"] = _editable("float")

    # listing / stock
    cols["listed_myntra"] = _editable("text")
    cols["listed_nykaa"] = _editable("text")
    for name in ("listed_quantity", "ats_pooled", "ats_myntra", "ats_nykaa"):
        cols[name] = _editable("int")

    # sales
    for name in ("one_month_total_sales", "one_month_sales_myntra", "one_month_sales_nykaa"):
        cols[name] = _editable("int")
    for p in PLATFORMS:
        for s in SIZES:
            cols[f"sold_{p}_{s}"] = _editable("int")
            cols[f"qty_{p}_{s}"] = _editable("int")

    # pricing
    for name in ("mrp", "price_myntra", "price_nykaa", "discount_percent_myntra", "discount_percent_nykaa"):
        cols[name] = _editable("float")

    # returns
    for name in ("total_return_units", "return_units_myntra", "return_units_nykaa"):
        cols[name] = _editable("int")
    cols["return_average_percent"] = _editable("float")

    # advertising
    cols["ads_platform"] = _editable("text")
    cols["clicks"] = _editable("int")
    cols["impressions"] = _editable("int")
    cols["ad_spend"] = _editable("float")

    # derived (computed by the view / computed-column layer)
    for name in (
        "daily_sales_myntra",
        "daily_sales_nykaa",
        "daily_total_sales",
        "days_of_cover_myntra",
        "days_of_cover_nykaa",
        "total_days_of_cover",
        "sell_through_myntra",
        "sell_through_nykaa",
        "total_sell_through",
        "fabric_consumed_meters",
        "fabric_consumed_meters_1",
        "fabric_consumed_meters_2",
        "fabric_consumed_meters_3",
        "fabric_remaining_meters_1",
        "fabric_remaining_meters_2",
        "fabric_remaining_meters_3",
        "units_possible_from_fabric",
        "revenue_myntra",
        "revenue_nykaa",
        "total_revenue",
        "roas",
        "contribution_margin_overall",
        "contribution_margin_myntra",
        "contribution_margin_nykaa",
    ):
        cols[name] = _derived()
    cols["broken_size_myntra"] = _derived("text")
    cols["broken_size_nykaa"] = _derived("text")
    for p in PLATFORMS:
        for s in SIZES:
            cols[f"size_contribution_{p}_{s}"] = _derived()

    return cols


COLUMNS: dict[str, ColumnSpec] = _build_columns()

EDITABLE_COLUMNS = frozenset(n for n, c in COLUMNS.items() if c.kind == EDITABLE)
DERIVED_COLUMNS = frozenset(n for n, c in COLUMNS.items() if c.kind == DERIVED)


def split_table_name(name: str) -> tuple[str | None, str]:
    """'public.inventory_view' -> ('public', 'inventory_view')."""
    if "." in name:
        schema, table = name.split(".", 1)
        return schema, table
    return None, name


def inventory_table(name: str, metadata: MetaData, include_derived: bool = False) -> Table:
    """
    Core Table for the style inventory record.

    Without derived columns this is the shape the UPDATE path writes to;
    with them it matches a table that stores computed values directly.
    """
    schema, table_name = split_table_name(name)
    columns = []
    for col_name, spec in COLUMNS.items():
        if spec.kind == DERIVED and not include_derived:
            continue
        sa_type = _SA_TYPES[spec.type]
        if spec.kind == IDENTITY:
            columns.append(Column(col_name, sa_type, primary_key=True))
        else:
            columns.append(Column(col_name, sa_type, nullable=True))
    return Table(table_name, metadata, *columns, schema=schema)


def schema_description(present: list[str] | None = None) -> list[dict]:
    """
    Column list for the schema endpoint. Columns that exist in the read
    projection but are not described here are reported as read-only.
    """
    names = list(present) if present is not None else list(COLUMNS)

    out = []
    for n in names:
        spec = COLUMNS.get(n)
        out.append(
            {
                "name": n,
                "kind": spec.kind if spec else DERIVED,
                "type": spec.type if spec else None,
                "editable": bool(spec and spec.editable),
            }
        )
    return out
