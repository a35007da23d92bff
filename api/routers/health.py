"""Liveness and readiness probes."""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter
from pydantic import BaseModel, Field
from sqlalchemy import inspect, text

from api.dependencies import get_state_manager
from config.engine import get_engine_config
from execution.persistence.state_manager import REQUIRED_TABLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Liveness of the API and its order store."""

    status: str = Field(description="healthy or unhealthy")
    database: str = Field(description="connected, or the connection error")
    timestamp: str


class ReadyResponse(BaseModel):
    """Whether the API can accept orders."""

    ready: bool
    checks: Dict[str, bool] = Field(description="database, tables, lock_backend")
    missing_tables: List[str] = Field(default_factory=list)
    lock_backend: str = Field(default="unknown", description="Resolved scope lock backend")
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse)
def health_check():
    """Report whether the order store answers a trivial query."""
    try:
        with get_state_manager()._get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return HealthResponse(status="unhealthy", database=f"error: {e}", timestamp=_now())

    return HealthResponse(status="healthy", database="connected", timestamp=_now())


@router.get("/ready", response_model=ReadyResponse)
def readiness_check():
    """Check the order store, its schema and the lock backend.

    Advisory locks need PostgreSQL; a store on any other database is only
    ready with in-process locks.
    """
    checks = {"database": False, "tables": False, "lock_backend": False}
    missing: List[str] = []
    backend = "unknown"

    try:
        state_manager = get_state_manager()
        engine = state_manager._get_engine()

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["database"] = True

        tables = set(inspect(engine).get_table_names())
        missing = [t for t in REQUIRED_TABLES if t not in tables]
        checks["tables"] = not missing

        dialect = state_manager.dialect
        backend = get_engine_config().resolved_lock_backend(dialect)
        checks["lock_backend"] = backend == "in_process" or dialect == "postgresql"
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")

    return ReadyResponse(
        ready=all(checks.values()),
        checks=checks,
        missing_tables=missing,
        lock_backend=backend,
        timestamp=_now(),
    )
