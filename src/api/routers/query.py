"""POST /query/nl, POST /query/sql, GET /metrics/overview -- query endpoints."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from src.core.config import get_settings
from src.core.logging import get_logger
from src.db.executor import QueryExecutionError, execute_query
from src.governance.sql_safety import check_sql_safety
from src.nl2sql.service import convert
from src.nl2sql.templates import overview_sql
from src.semantic.schema_loader import load_schema

logger = get_logger(__name__)
router = APIRouter()



class NLQueryRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=1000, description="Natural-language question")
    execute: bool = Field(True, description="If false, return the SQL without running it")


class SQLQueryRequest(BaseModel):
    sql: str = Field(..., min_length=1, description="Raw BigQuery SQL")
    execute: bool = Field(True, description="If false, only run the safety checks")


class NLQueryResponse(BaseModel):
    success: bool
    query: str
    sql: str
    source: str
    rule: str | None
    results: list[dict[str, Any]]
    row_count: int
    latency_ms: int


class SQLQueryResponse(BaseModel):
    success: bool
    sql: str
    results: list[dict[str, Any]]
    row_count: int


class OverviewResponse(BaseModel):
    success: bool
    period: str
    metrics: dict[str, Any] | None



def _guard(sql: str) -> None:
    """Raise 400 if *sql* fails the safety gate."""
    errors = check_sql_safety(sql)
    if errors:
        raise HTTPException(
            status_code=400,
            detail={"error": "Query rejected by safety checks", "safety_errors": errors, "sql": sql},
        )


def _run(sql: str) -> list[dict[str, Any]]:
    try:
        return execute_query(sql)
    except QueryExecutionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())



@router.post("/query/nl", response_model=NLQueryResponse)
def nl_query_endpoint(req: NLQueryRequest):
    """Question -> SQL (LLM, else fallback rules) -> safety check -> execute."""
    result = convert(req.query)
    logger.info("Generated SQL for %r via %s", req.query, result.source)
    _guard(result.sql)

    rows = _run(result.sql) if req.execute else []
    return NLQueryResponse(
        success=True,
        query=req.query,
        sql=result.sql,
        source=result.source,
        rule=result.rule,
        results=rows,
        row_count=len(rows),
        latency_ms=result.latency_ms,
    )


@router.post("/query/sql", response_model=SQLQueryResponse)
def sql_query_endpoint(req: SQLQueryRequest):
    """Run user-written SQL after the safety gate."""
    _guard(req.sql)
    rows = _run(req.sql) if req.execute else []
    return SQLQueryResponse(success=True, sql=req.sql, results=rows, row_count=len(rows))


@router.get("/metrics/overview", response_model=OverviewResponse)
def metrics_overview_endpoint(days: int = Query(30, ge=1, le=3650)):
    """Totals and overall CAC / CPC / CTR / CVR over the trailing *days*."""
    sql = overview_sql(load_schema(), get_settings().table_ref, days=days)
    rows = _run(sql)
    return OverviewResponse(
        success=True,
        period=f"Last {days} days",
        metrics=rows[0] if rows else None,
    )
