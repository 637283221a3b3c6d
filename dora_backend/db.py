# dora_backend/db.py

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import MetaData, Table, create_engine, text
from sqlalchemy.engine import Engine

from dora_backend.config import DashboardConfig, mask_url
from dora_backend.models import inventory_table, split_table_name

logger = logging.getLogger("dora_backend.db")


class Database:
    """
    Process-wide connection pool plus the two resolved table handles:

      - writable:   canonical table targeted by UPDATEs
      - projection: read-optimized view (or the table itself) used by every read

    Names come from config only and are resolved once in init().
    """

    def __init__(self, config: DashboardConfig, engine: Optional[Engine] = None):
        self.config = config
        self._engine = engine
        self._owns_engine = engine is None
        self._writable: Optional[Table] = None
        self._projection: Optional[Table] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def init(self) -> None:
        if self._projection is not None:
            return

        if self._engine is None:
            logger.info("Connecting to database %s", mask_url(self.config.connection_uri))
            self._engine = create_engine(self.config.connection_uri, pool_pre_ping=True)

        self.ping()

        # writable side is described locally; only editable + identity columns are ever touched
        self._writable = inventory_table(self.config.writable_table_name, MetaData())

        schema, name = split_table_name(self.config.projection_name)
        self._projection = Table(name, MetaData(), schema=schema, autoload_with=self._engine)

        logger.info(
            "Inventory table=%s read projection=%s (%d columns)",
            self.config.writable_table_name,
            self.config.projection_name,
            len(self._projection.columns),
        )

    def shutdown(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
        self._writable = None
        self._projection = None

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------
    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database.init() has not been called")
        return self._engine

    @property
    def writable(self) -> Table:
        if self._writable is None:
            raise RuntimeError("Database.init() has not been called")
        return self._writable

    @property
    def projection(self) -> Table:
        if self._projection is None:
            raise RuntimeError("Database.init() has not been called")
        return self._projection

    def ping(self) -> int:
        """Quick connectivity test."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar_one()
