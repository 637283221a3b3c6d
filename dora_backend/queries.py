# dora_backend/queries.py
# Reporting queries: every read goes against the read projection

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pandas as pd
from sqlalchemy import and_, case, distinct, func, or_, select

from dora_backend.config import DashboardConfig
from dora_backend.db import Database


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _to_float(v, default=0.0):
    if v is None:
        return default
    if isinstance(v, Decimal):
        return float(v)
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _to_int(v, default=0):
    f = _to_float(v, None)
    return int(f) if f is not None else default


def _jsonable(v):
    if isinstance(v, Decimal):
        return float(v)
    return v


class InventoryQueries:
    """Fixed set of aggregate queries; each call is a pure function of table state."""

    def __init__(self, database: Database, config: DashboardConfig):
        self.db = database
        self.config = config

    @property
    def _t(self):
        return self.db.projection

    # -------------------------------------------------------------------------
    # KPIs
    # -------------------------------------------------------------------------
    def kpi_summary(self) -> dict:
        t = self._t
        active = or_(t.c.ats_pooled > 0, t.c.one_month_total_sales > 0)

        q = (
            select(
                func.count(distinct(t.c.style_id)).filter(active).label("total_active_styles"),
                func.count().filter(t.c.total_days_of_cover < self.config.risk_days_of_cover).label(
                    "styles_at_risk_count"
                ),
                func.coalesce(func.sum(t.c.total_revenue), 0).label("revenue_last_30d"),
                func.avg(t.c.return_average_percent)
                .filter(t.c.one_month_total_sales > 0)
                .label("avg_return_rate_pct"),
            )
            .select_from(t)
            .where(active)
        )

        with self.db.engine.connect() as conn:
            row = conn.execute(q).mappings().first() or {}

        return {
            "totalActiveStyles": _to_int(row.get("total_active_styles")),
            "totalActiveStylesChange": "+0",
            "stylesAtRiskCount": _to_int(row.get("styles_at_risk_count")),
            "stylesAtRiskChange": "+0",
            "revenueLast30d": _to_float(row.get("revenue_last_30d")),
            "revenueLast30dChange": "+0",
            "averageReturnRate": _to_float(row.get("avg_return_rate_pct")),
            "averageReturnRateChange": "+0%",
        }

    # -------------------------------------------------------------------------
    # Top performers / risks
    # -------------------------------------------------------------------------
    def top_skus(self, limit: int = 5) -> list[dict]:
        t = self._t
        # tie goes to Nykaa: Myntra only wins on strictly higher sales
        primary = case(
            (
                func.coalesce(t.c.one_month_sales_myntra, 0) > func.coalesce(t.c.one_month_sales_nykaa, 0),
                "Myntra",
            ),
            else_="Nykaa",
        )
        q = (
            select(
                t.c.style_id,
                t.c.style_name,
                primary.label("primary_platform"),
                t.c.one_month_total_sales,
            )
            .where(and_(t.c.one_month_total_sales > 0, t.c.ats_pooled > 0))
            .order_by(t.c.one_month_total_sales.desc(), t.c.style_id.asc())
            .limit(limit)
        )

        with self.db.engine.connect() as conn:
            rows = conn.execute(q).mappings().all()

        return [
            {
                "styleId": r["style_id"],
                "styleName": r["style_name"],
                "primaryPlatform": r["primary_platform"],
                "oneMonthSalesUnits": _to_int(r["one_month_total_sales"]),
            }
            for r in rows
        ]

    def stockout_risks(self, limit: int = 5) -> list[dict]:
        t = self._t
        avg_daily = (
            select(func.avg(t.c.daily_total_sales))
            .where(t.c.daily_total_sales > 0)
            .scalar_subquery()
        )
        q = (
            select(
                t.c.style_id,
                t.c.style_name,
                t.c.total_days_of_cover,
                t.c.ats_pooled,
                t.c.daily_total_sales,
            )
            .where(
                and_(
                    t.c.total_days_of_cover < self.config.risk_days_of_cover,
                    t.c.daily_total_sales > 0,
                    t.c.daily_total_sales >= avg_daily,
                )
            )
            .order_by(t.c.total_days_of_cover.asc(), t.c.daily_total_sales.desc())
            .limit(limit)
        )

        with self.db.engine.connect() as conn:
            rows = conn.execute(q).mappings().all()

        return [
            {
                "styleId": r["style_id"],
                "styleName": r["style_name"],
                "daysOfCover": _to_float(r["total_days_of_cover"]),
                "atsPooled": _to_int(r["ats_pooled"]),
                "dailySales": _to_float(r["daily_total_sales"]),
            }
            for r in rows
        ]

    # -------------------------------------------------------------------------
    # Trends
    # -------------------------------------------------------------------------
    def channel_performance(self) -> list[dict]:
        """
        Estimated ad ROAS per ads platform.

        AOV is global across all styles; orders are estimated from clicks at a
        fixed assumed CVR, so this is a directional number, not attribution.
        """
        t = self._t
        cvr = self.config.assumed_cvr

        aov_q = select(
            func.sum(
                func.coalesce(t.c.one_month_sales_myntra, 0) * func.coalesce(t.c.price_myntra, 0)
                + func.coalesce(t.c.one_month_sales_nykaa, 0) * func.coalesce(t.c.price_nykaa, 0)
            ).label("gross"),
            func.sum(t.c.one_month_total_sales).label("units"),
        ).select_from(t)

        platform_q = (
            select(
                t.c.ads_platform,
                func.sum(t.c.ad_spend).label("total_ad_spend"),
                func.sum(t.c.clicks).label("total_clicks"),
            )
            .where(t.c.ad_spend.isnot(None))
            .group_by(t.c.ads_platform)
        )

        with self.db.engine.connect() as conn:
            aov_row = conn.execute(aov_q).mappings().first() or {}
            rows = conn.execute(platform_q).mappings().all()

        units = _to_float(aov_row.get("units"))
        aov = _to_float(aov_row.get("gross")) / units if units else 0.0

        out = []
        for r in rows:
            spend = _to_float(r["total_ad_spend"])
            clicks = _to_float(r["total_clicks"])
            orders = clicks * cvr
            revenue = orders * aov
            out.append(
                {
                    "adsPlatform": r["ads_platform"],
                    "totalAdSpend": spend,
                    "totalClicks": _to_int(clicks),
                    "globalAov": aov,
                    "assumedCvr": cvr,
                    "estimatedOrders": orders,
                    "revenue30d": revenue,
                    "roasX": None if spend == 0 else revenue / spend,
                }
            )

        out.sort(key=lambda x: x["totalAdSpend"], reverse=True)
        return out

    def return_rate_by_category(self) -> list[dict]:
        t = self._t
        q = (
            select(
                t.c.category,
                func.coalesce(func.sum(t.c.total_return_units), 0).label("return_units"),
                func.coalesce(func.sum(t.c.one_month_total_sales), 0).label("sold_units"),
            )
            .group_by(t.c.category)
        )

        with self.db.engine.connect() as conn:
            rows = conn.execute(q).mappings().all()

        out = []
        for r in rows:
            sold = _to_float(r["sold_units"])
            pct = round(100.0 * _to_float(r["return_units"]) / sold, 1) if sold else 0.0
            out.append({"category": r["category"], "returnRatePct": pct})

        out.sort(key=lambda x: (-x["returnRatePct"], str(x["category"] or "")))
        return out

    def units_vs_returns(self, today: Optional[date] = None) -> list[dict]:
        """Last 7 days; the snapshot has no daily history, so every day carries the same rates."""
        t = self._t
        daily = func.coalesce(t.c.daily_total_sales, 0)
        q = select(
            func.sum(daily).label("units_sold_per_day"),
            func.sum(daily * func.coalesce(t.c.return_average_percent, 0) / 100.0).label("returned_per_day"),
        ).select_from(t)

        with self.db.engine.connect() as conn:
            row = conn.execute(q).mappings().first() or {}

        units = _to_float(row.get("units_sold_per_day"))
        rate = (_to_float(row.get("returned_per_day")) / units * 100) if units else 0.0

        end = today or date.today()
        return [
            {
                "dayLabel": (end - timedelta(days=offset)).strftime("%a"),
                "unitsSold": round(units),
                "returnRatePct": rate,
            }
            for offset in range(6, -1, -1)
        ]

    def fabric_usage(self, limit: int = 4) -> list[dict]:
        t = self._t
        usage = func.sum(t.c.one_month_total_sales * t.c.fabric_yield_per_unit)
        q = (
            select(
                t.c.fabric_type,
                func.max(t.c.fabric_available_mtr).label("available_meters"),
                usage.label("usage_30d_meters"),
            )
            .group_by(t.c.fabric_type)
            .order_by(func.coalesce(usage, 0).desc(), t.c.fabric_type.asc())
            .limit(limit)
        )

        with self.db.engine.connect() as conn:
            rows = conn.execute(q).mappings().all()

        return [
            {
                "fabricType": r["fabric_type"],
                "availableMeters": _to_float(r["available_meters"]),
                "usage30dMeters": _to_float(r["usage_30d_meters"]),
            }
            for r in rows
        ]

    # -------------------------------------------------------------------------
    # Master table
    # -------------------------------------------------------------------------
    def master_table(self, search: Optional[str] = None) -> list[dict]:
        t = self._t
        q = select(t)

        s = (search or "").strip()
        if s:
            q = q.where(
                or_(
                    t.c.style_name.icontains(s, autoescape=True),
                    t.c.style_id.icontains(s, autoescape=True),
                    t.c.category.icontains(s, autoescape=True),
                )
            )

        q = q.order_by(t.c.style_id.asc())
        if self.config.master_table_row_cap:
            q = q.limit(self.config.master_table_row_cap)

        with self.db.engine.connect() as conn:
            rows = conn.execute(q).mappings().all()

        return [{k: _jsonable(v) for k, v in r.items()} for r in rows]

    def export_frame(self, search: Optional[str] = None) -> pd.DataFrame:
        rows = self.master_table(search)
        columns = [c.name for c in self._t.columns]
        return pd.DataFrame(rows, columns=columns)
