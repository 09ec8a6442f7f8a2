"""
GET /schema, GET /metrics -- the fixed table description both translation paths use.
"""
from __future__ import annotations

from fastapi import APIRouter

from src.core.config import get_settings
from src.semantic.schema_loader import load_schema

router = APIRouter()



@router.get("/schema")
def table_schema() -> dict:
    """Return the schema descriptor for the configured table."""
    schema = load_schema()
    return {
        "success": True,
        "table": get_settings().table_ref.strip("`"),
        "schema": schema.get_columns_list(),
        "derived_metrics": schema.get_metrics_list(),
        "unavailable_columns": list(schema.unavailable_columns),
        "unsupported_metrics": [u.name for u in schema.unsupported_metrics],
    }


@router.get("/metrics")
def list_metrics() -> dict:
    """Return derived metric names (lightweight)."""
    return {"metrics": load_schema().get_metric_names()}
