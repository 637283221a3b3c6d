# dora_backend/deps.py
# FastAPI dependencies: everything hangs off app.state, set up in the lifespan

from __future__ import annotations

from fastapi import Request

from dora_backend.config import DashboardConfig
from dora_backend.queries import InventoryQueries
from dora_backend.write_gate import StyleWriteGate


def get_config(request: Request) -> DashboardConfig:
    return request.app.state.config


def get_queries(request: Request) -> InventoryQueries:
    return request.app.state.queries


def get_write_gate(request: Request) -> StyleWriteGate:
    return request.app.state.write_gate
