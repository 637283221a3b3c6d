# dora_backend/write_gate.py
# Partial style updates: only editable columns ever reach the UPDATE

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

import pandas as pd
from sqlalchemy import func, select, update

from dora_backend.db import Database
from dora_backend.errors import NotFoundError, ValidationError
from dora_backend.models import COLUMNS, DERIVED_COLUMNS, EDITABLE_COLUMNS

logger = logging.getLogger("dora_backend.write_gate")


def normalize_style_id(raw: str | None) -> str:
    """Trim, drop any query-string / fragment tail, reject empties."""
    s = str(raw or "").strip()
    for sep in ("?", "#"):
        if sep in s:
            s = s.split(sep, 1)[0]
    s = s.strip()
    if not s:
        raise ValidationError("style_id is required")
    return s


def writable_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """(fields ∩ editable) − derived."""
    return {
        k: v
        for k, v in (fields or {}).items()
        if k in EDITABLE_COLUMNS and k not in DERIVED_COLUMNS
    }


def _blank(v, kind: str) -> bool:
    if v is None:
        return True
    if not isinstance(v, str):
        return False
    s = v.strip().lower()
    if kind == "text":
        return s == ""
    # "null" / "none" clear numeric and date columns; on text columns they are data
    return s in ("", "null", "none")


def _coerce_number(v, as_int: bool):
    if isinstance(v, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(v, (int, float, Decimal)):
        f = float(v)
    else:
        f = float(str(v).replace(",", "").strip())
    if f != f:  # NaN
        raise ValueError("NaN")
    if as_int:
        if not f.is_integer():
            raise ValueError("expected a whole number")
        return int(f)
    return f


def _coerce_date(v):
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    dt = pd.to_datetime(str(v).strip(), errors="coerce")
    if pd.isna(dt):
        raise ValueError("unrecognised date")
    return dt.date()


def coerce_value(column: str, value: Any):
    """Client values arrive as strings from the table editor; cast them to the column type."""
    kind = COLUMNS[column].type
    if _blank(value, kind):
        return None

    if kind == "int":
        return _coerce_number(value, as_int=True)
    if kind == "float":
        return _coerce_number(value, as_int=False)
    if kind == "date":
        return _coerce_date(value)
    return str(value).strip()


class StyleWriteGate:
    def __init__(self, database: Database):
        self.db = database

    def prepare(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        values = writable_fields(fields)
        if not values:
            raise ValidationError("No valid fields to update")

        out = {}
        bad = []
        for k, v in values.items():
            try:
                out[k] = coerce_value(k, v)
            except (TypeError, ValueError):
                bad.append(k)
        if bad:
            raise ValidationError(
                "Invalid values for fields", details={"fields": sorted(bad)}, public_details=True
            )
        return out

    def update(self, style_id: str | None, fields: Mapping[str, Any]) -> dict:
        """
        Apply a partial update to one style and return the re-read row.

        Exactly one UPDATE (against the writable table) and one SELECT
        (against the read projection, so derived columns reflect the write).
        Both run on the same connection; there is no row lock, so a concurrent
        writer can land between the two statements.
        """
        key = normalize_style_id(style_id)
        values = self.prepare(fields)

        w = self.db.writable
        p = self.db.projection

        stmt = (
            update(w)
            .where(func.lower(func.trim(w.c.style_id)) == key.lower())
            .values(**values)
            .returning(w.c.style_id)
        )

        with self.db.engine.connect() as conn:
            matched = conn.execute(stmt).scalars().all()
            conn.commit()

            if not matched:
                raise NotFoundError(f"Style not found: {key}")

            row = conn.execute(select(p).where(p.c.style_id == matched[0])).mappings().first()

        if row is None:
            # written, but the projection does not expose it (view filters it out)
            raise NotFoundError(f"Style not found: {key}")

        logger.info("Updated style %s fields=%s", matched[0], sorted(values))
        return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in row.items()}
