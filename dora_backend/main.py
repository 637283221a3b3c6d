# dora_backend/main.py

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from dora_backend.config import DashboardConfig
from dora_backend.dashboard_routes import router as dashboard_router
from dora_backend.db import Database
from dora_backend.errors import DashboardError
from dora_backend.master_table_routes import router as master_table_router
from dora_backend.queries import InventoryQueries
from dora_backend.write_gate import StyleWriteGate

logger = logging.getLogger("dora_backend.main")


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("dora_backend")
    root.setLevel(level.upper())
    # Prevent adding handlers multiple times (reloads, repeated create_app)
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)


def _preflight_headers(request: Request) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, PUT, OPTIONS",
        "Access-Control-Allow-Headers": request.headers.get("access-control-request-headers") or "*",
        "Access-Control-Max-Age": "600",
    }


def create_app(config: Optional[DashboardConfig] = None, engine: Optional[Engine] = None) -> FastAPI:
    cfg = config or DashboardConfig.from_env()
    configure_logging(cfg.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(cfg, engine=engine)
        database.init()
        app.state.database = database
        app.state.queries = InventoryQueries(database, cfg)
        app.state.write_gate = StyleWriteGate(database)
        try:
            yield
        finally:
            database.shutdown()

    app = FastAPI(title="Dora Dori Inventory API", lifespan=lifespan)
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # OPTIONS on any path: 200, empty body, permissive CORS headers.
    # Registered last so it wraps CORSMiddleware and answers preflights first.
    # -------------------------------------------------------------------------
    @app.middleware("http")
    async def options_ok(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=_preflight_headers(request))
        return await call_next(request)

    # -------------------------------------------------------------------------
    # Errors -> {error}
    # -------------------------------------------------------------------------
    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(cfg.expose_error_details))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        body = {"error": "Invalid request"}
        if cfg.expose_error_details:
            body["details"] = [e.get("msg") for e in exc.errors()]
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Server error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------
    @app.get("/")
    def home():
        return {
            "status": "ok",
            "message": "Inventory API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(dashboard_router, prefix=cfg.api_prefix)
    app.include_router(master_table_router, prefix=cfg.api_prefix)

    return app

