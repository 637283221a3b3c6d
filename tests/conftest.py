"""
Shared fixtures: in-memory SQLite databases shaped like the inventory table.

- flat:  one table that stores derived columns directly (read view = table)
- view:  editable-only table + a view that computes a few derived columns
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import MetaData, create_engine, insert, text
from sqlalchemy.pool import StaticPool

from dora_backend.config import DashboardConfig
from dora_backend.db import Database
from dora_backend.main import create_app
from dora_backend.models import inventory_table
from dora_backend.queries import InventoryQueries
from dora_backend.write_gate import StyleWriteGate


def _style(style_id, **kw):
    row = {
        "style_id": style_id,
        "style_name": None,
        "category": None,
        "ats_pooled": 0,
        "one_month_total_sales": 0,
        "one_month_sales_myntra": 0,
        "one_month_sales_nykaa": 0,
        "price_myntra": 100.0,
        "price_nykaa": 100.0,
    }
    row.update(kw)
    return row


REPORT_ROWS = [
    _style("A1", style_name="Floral Maxi", category="Dresses", ats_pooled=40, one_month_total_sales=60,
           one_month_sales_myntra=40, one_month_sales_nykaa=20, total_days_of_cover=20, daily_total_sales=2.0,
           total_revenue=6000, return_average_percent=10, total_return_units=6, ads_platform="Meta",
           ad_spend=1000, clicks=4000, fabric_type="Cotton", fabric_available_mtr=500, fabric_yield_per_unit=2.0),
    _style("A2", style_name="Linen Shirt", category="Tops", ats_pooled=5, one_month_total_sales=30,
           one_month_sales_myntra=10, one_month_sales_nykaa=20, total_days_of_cover=5, daily_total_sales=1.0,
           total_revenue=3000, return_average_percent=20, total_return_units=6, ads_platform="Google",
           ad_spend=500, clicks=1000, fabric_type="Linen", fabric_available_mtr=300, fabric_yield_per_unit=1.5),
    _style("A3", style_name="Denim Skirt", category="Bottoms", ats_pooled=100, one_month_total_sales=15,
           one_month_sales_myntra=5, one_month_sales_nykaa=10, total_days_of_cover=200, daily_total_sales=0.5,
           total_revenue=1500, return_average_percent=0, total_return_units=0, ads_platform="Meta",
           ad_spend=0, clicks=0, fabric_type="Denim", fabric_available_mtr=200, fabric_yield_per_unit=1.0),
    _style("A4", style_name="Silk Kurta", category="Dresses", ats_pooled=0, one_month_total_sales=45,
           one_month_sales_myntra=25, one_month_sales_nykaa=20, total_days_of_cover=0, daily_total_sales=1.5,
           total_revenue=4500, return_average_percent=4, total_return_units=2,
           fabric_type="Silk", fabric_available_mtr=100, fabric_yield_per_unit=2.5),
    _style("A5", style_name="Cotton Tee", category="Tops", ats_pooled=20, one_month_total_sales=0,
           total_days_of_cover=None, daily_total_sales=0, total_revenue=0, return_average_percent=50,
           total_return_units=0, ads_platform="Zero", ad_spend=0, clicks=100,
           fabric_type="Cotton", fabric_available_mtr=500, fabric_yield_per_unit=1.0),
    _style("A6", style_name="Archived Scarf", category="Accessories", ats_pooled=0, one_month_total_sales=0,
           total_days_of_cover=10, daily_total_sales=0, total_revenue=0, total_return_units=0,
           fabric_type="Wool", fabric_available_mtr=50, fabric_yield_per_unit=1.0),
    _style("A7", style_name="Equal Split Top", category="Tops", ats_pooled=8, one_month_total_sales=20,
           one_month_sales_myntra=10, one_month_sales_nykaa=10, total_days_of_cover=12, daily_total_sales=0.6667,
           total_revenue=2000, return_average_percent=5, total_return_units=1,
           fabric_type="Linen", fabric_available_mtr=300, fabric_yield_per_unit=1.0),
]

WRITE_ROWS = [
    _style("ABC-1", style_name="Tiered Dress", category="Dresses", ats_pooled=30, one_month_total_sales=60,
           one_month_sales_myntra=30, one_month_sales_nykaa=30, price_myntra=500.0, price_nykaa=550.0,
           launch_date=date(2025, 1, 15)),
    _style("XYZ-9", style_name="Wrap Top", category="Tops", ats_pooled=12, one_month_total_sales=9,
           one_month_sales_myntra=6, one_month_sales_nykaa=3),
]

VIEW_SQL = """
CREATE VIEW inventory_view AS
SELECT
    d.*,
    d.one_month_sales_myntra / 30.0 AS daily_sales_myntra,
    d.one_month_sales_nykaa / 30.0 AS daily_sales_nykaa,
    d.one_month_total_sales / 30.0 AS daily_total_sales,
    CASE WHEN d.one_month_total_sales > 0
         THEN d.ats_pooled / (d.one_month_total_sales / 30.0) END AS total_days_of_cover,
    d.one_month_sales_myntra * d.price_myntra AS revenue_myntra,
    d.one_month_sales_nykaa * d.price_nykaa AS revenue_nykaa,
    COALESCE(d.one_month_sales_myntra * d.price_myntra, 0)
      + COALESCE(d.one_month_sales_nykaa * d.price_nykaa, 0) AS total_revenue
FROM inventory_data d
"""


def make_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def make_flat_engine(rows):
    engine = make_engine()
    md = MetaData()
    table = inventory_table("inventory_data", md, include_derived=True)
    md.create_all(engine)
    with engine.begin() as conn:
        if rows:
            conn.execute(insert(table), [_full(table, r) for r in rows])
    return engine


def make_view_engine(rows):
    engine = make_engine()
    md = MetaData()
    table = inventory_table("inventory_data", md)
    md.create_all(engine)
    with engine.begin() as conn:
        if rows:
            conn.execute(insert(table), [_full(table, r) for r in rows])
        conn.execute(text(VIEW_SQL))
    return engine


def _full(table, row):
    # executemany needs the same keys on every row
    return {c.name: row.get(c.name) for c in table.columns}


# -----------------------------------------------------------------------------
# Configs
# -----------------------------------------------------------------------------
@pytest.fixture
def flat_config():
    return DashboardConfig(connection_uri="sqlite://")


@pytest.fixture
def view_config():
    return DashboardConfig(connection_uri="sqlite://", read_view_name="inventory_view")


# -----------------------------------------------------------------------------
# Engines / layers
# -----------------------------------------------------------------------------
@pytest.fixture
def flat_engine():
    engine = make_flat_engine(REPORT_ROWS)
    yield engine
    engine.dispose()


@pytest.fixture
def view_engine():
    engine = make_view_engine(WRITE_ROWS)
    yield engine
    engine.dispose()


@pytest.fixture
def flat_db(flat_config, flat_engine):
    db = Database(flat_config, engine=flat_engine)
    db.init()
    yield db
    db.shutdown()


@pytest.fixture
def view_db(view_config, view_engine):
    db = Database(view_config, engine=view_engine)
    db.init()
    yield db
    db.shutdown()


@pytest.fixture
def queries(flat_db, flat_config):
    return InventoryQueries(flat_db, flat_config)


@pytest.fixture
def gate(view_db):
    return StyleWriteGate(view_db)


# -----------------------------------------------------------------------------
# HTTP clients
# -----------------------------------------------------------------------------
@pytest.fixture
def flat_client(flat_config, flat_engine):
    with TestClient(create_app(flat_config, engine=flat_engine)) as client:
        yield client


@pytest.fixture
def view_client(view_config, view_engine):
    with TestClient(create_app(view_config, engine=view_engine)) as client:
        yield client
