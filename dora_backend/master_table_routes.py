# dora_backend/master_table_routes.py
# Master data table: full/filtered read, schema, CSV export, partial update

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError

from dora_backend.deps import get_queries, get_write_gate
from dora_backend.errors import UpstreamError
from dora_backend.models import schema_description
from dora_backend.queries import InventoryQueries
from dora_backend.write_gate import StyleWriteGate

logger = logging.getLogger("dora_backend.master_table_routes")

router = APIRouter(prefix="/master-table", tags=["master-table"])


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

@router.get("")
def get_master_table(
    search: Optional[str] = Query(None, description="Substring match on style name / id / category"),
    queries: InventoryQueries = Depends(get_queries),
):
    """
    Returns every matching row in one page so the editor can show the full
    dataset. `pagination` is kept for clients that still read it.
    """
    try:
        rows = queries.master_table(search)
    except SQLAlchemyError as e:
        logger.exception("Error fetching master table")
        raise UpstreamError("Failed to fetch master table", details=str(e))

    total = len(rows)
    return {
        "data": rows,
        "total": total,
        "pagination": {
            "page": 1,
            "page_size": total,
            "total": total,
            "total_pages": 1,
        },
    }


@router.get("/schema")
def get_master_table_schema(queries: InventoryQueries = Depends(get_queries)):
    """Which columns the editor may change; everything else is read-only."""
    present = [c.name for c in queries.db.projection.columns]
    return {"columns": schema_description(present)}


@router.get("/export")
def export_master_table(
    search: Optional[str] = Query(None),
    queries: InventoryQueries = Depends(get_queries),
):
    try:
        df = queries.export_frame(search)
    except SQLAlchemyError as e:
        logger.exception("Error exporting master table")
        raise UpstreamError("Failed to export master table", details=str(e))

    output = io.StringIO()
    df.to_csv(output, index=False)
    output.seek(0)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=master_table_{stamp}.csv"},
    )


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------

@router.put("/{style_id}")
def update_style(
    style_id: str,
    fields: dict[str, Any] = Body(...),
    gate: StyleWriteGate = Depends(get_write_gate),
):
    try:
        row = gate.update(style_id, fields)
    except SQLAlchemyError as e:
        logger.exception("Error updating style %s", style_id)
        raise UpstreamError("Failed to update style", details=str(e))
    return {"row": row}
