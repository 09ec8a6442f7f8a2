"""SQLAlchemy engine for the BigQuery ads table.

Single shared engine built on the ``sqlalchemy-bigquery`` dialect.
Credentials come from Application Default Credentials.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            location=settings.bigquery_location,
            echo=False,
        )
        logger.info("BigQuery engine created  project=%s  dataset=%s  location=%s",
                    settings.project_id, settings.dataset_id, settings.bigquery_location)
    return _engine


@contextmanager
def query_connection() -> Generator[Connection, None, None]:
    """Yield a pooled connection; returned to the pool on exit."""
    conn = get_engine().connect()
    try:
        yield conn
    finally:
        conn.close()
