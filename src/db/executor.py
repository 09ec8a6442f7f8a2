"""
SQL executor for the ads table.

All queries run through `execute_query`, which:
  1. Wraps the query in text() and runs it on a pooled BigQuery connection
  2. Converts Decimal/date/datetime to JSON-safe Python types
  3. Classifies failures into `QueryExecutionError` (not found, access denied,
     invalid query, missing credentials, anything else)
"""
from __future__ import annotations

import decimal
import datetime
from typing import Any

from google.api_core import exceptions as gexc
from google.auth.exceptions import DefaultCredentialsError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.db.connection import query_connection
from src.core.logging import get_logger

logger = get_logger(__name__)


class QueryExecutionError(RuntimeError):
    """A query failed in BigQuery, tagged with an API-facing code and status."""

    def __init__(self, message: str, code: str, status_code: int, suggestion: str = ""):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion

    def to_detail(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "code": self.code,
            "suggestion": self.suggestion,
        }


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def _causes(exc: BaseException):
    """Yield *exc*, its DBAPI ``orig`` and its cause/context chain (cycle-safe)."""
    seen: set[int] = set()
    stack: list[BaseException | None] = [exc]
    while stack:
        current = stack.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend([
            getattr(current, "orig", None),
            current.__cause__,
            current.__context__,
        ])


def classify_error(exc: BaseException) -> QueryExecutionError:
    """Map a driver / Google API failure onto a QueryExecutionError."""
    for err in _causes(exc):
        if isinstance(err, gexc.NotFound):
            return QueryExecutionError(
                "Dataset or table not found. Please check your BigQuery configuration.",
                code="RESOURCE_NOT_FOUND",
                status_code=404,
                suggestion="Verify PROJECT_ID, DATASET_ID and TABLE_ID in the environment.",
            )
        if isinstance(err, gexc.Forbidden):
            return QueryExecutionError(
                "Access denied to BigQuery resource.",
                code="ACCESS_DENIED",
                status_code=403,
                suggestion="Ensure the account has BigQuery Data Viewer and Job User permissions.",
            )
        if isinstance(err, gexc.BadRequest):
            return QueryExecutionError(
                f"Invalid query: {getattr(err, 'message', err)}",
                code="INVALID_QUERY",
                status_code=400,
            )
        if isinstance(err, DefaultCredentialsError):
            return QueryExecutionError(
                "No Google credentials available for BigQuery.",
                code="CREDENTIALS_MISSING",
                status_code=503,
                suggestion="Run `gcloud auth application-default login` or set GOOGLE_APPLICATION_CREDENTIALS.",
            )
    return QueryExecutionError(str(exc) or type(exc).__name__, code="QUERY_FAILED", status_code=500)


def execute_query(sql: str, params: dict | None = None) -> list[dict[str, Any]]:
    """Execute *sql* against BigQuery and return rows as serialisable dicts.

    Raises
    ------
    QueryExecutionError
        If the query fails for any reason.
    """
    logger.info("Executing SQL (%d chars)", len(sql))

    try:
        with query_connection() as conn:
            result = conn.execute(text(sql), params or {})
            columns = list(result.keys())
            rows = [
                {col: _serialise_value(val) for col, val in zip(columns, row)}
                for row in result.fetchall()
            ]
    except (SQLAlchemyError, gexc.GoogleAPIError, DefaultCredentialsError) as exc:
        error = classify_error(exc)
        logger.error("SQL execution failed: code=%s  %s", error.code, exc)
        raise error from exc

    logger.info("Returned %d rows", len(rows))
    return rows
