# dora_backend/dashboard_routes.py
# KPI cards, top performers, stockout risks and trend charts

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from dora_backend.deps import get_queries
from dora_backend.errors import UpstreamError
from dora_backend.queries import InventoryQueries

logger = logging.getLogger("dora_backend.dashboard_routes")

router = APIRouter(tags=["dashboard"])


def _upstream(what: str, e: Exception) -> UpstreamError:
    logger.exception("Error running %s query", what)
    return UpstreamError(f"Failed to fetch {what}", details=str(e))


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------

@router.get("/kpis")
def get_kpis(queries: InventoryQueries = Depends(get_queries)):
    try:
        return queries.kpi_summary()
    except SQLAlchemyError as e:
        raise _upstream("KPI data", e)


@router.get("/top-skus")
def get_top_skus(queries: InventoryQueries = Depends(get_queries)):
    """Top 5 styles by one-month units (in stock only)."""
    try:
        return queries.top_skus()
    except SQLAlchemyError as e:
        raise _upstream("top SKUs", e)


@router.get("/stockout-risks")
def get_stockout_risks(queries: InventoryQueries = Depends(get_queries)):
    """Low cover + above-average sellers, most urgent first."""
    try:
        return queries.stockout_risks()
    except SQLAlchemyError as e:
        raise _upstream("stockout risks", e)


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------

@router.get("/trends/channel-performance")
def get_channel_performance(queries: InventoryQueries = Depends(get_queries)):
    try:
        return queries.channel_performance()
    except SQLAlchemyError as e:
        raise _upstream("channel performance data", e)


@router.get("/trends/return-rate-by-category")
def get_return_rate_by_category(queries: InventoryQueries = Depends(get_queries)):
    try:
        return queries.return_rate_by_category()
    except SQLAlchemyError as e:
        raise _upstream("return rate by category data", e)


@router.get("/trends/units-vs-returns")
def get_units_vs_returns(queries: InventoryQueries = Depends(get_queries)):
    try:
        return queries.units_vs_returns()
    except SQLAlchemyError as e:
        raise _upstream("units vs returns data", e)


@router.get("/trends/fabric-usage")
def get_fabric_usage(queries: InventoryQueries = Depends(get_queries)):
    try:
        return queries.fabric_usage()
    except SQLAlchemyError as e:
        raise _upstream("fabric usage data", e)
