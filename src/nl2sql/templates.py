"""
SQL templates for the ads-spend table (BigQuery dialect).

Every builder reads metric formulas and date windows from the schema
descriptor and never invents columns of its own.  Ratios always go through
``null_safe_div`` so an empty or zero denominator yields NULL.
"""
from __future__ import annotations

from typing import Callable

from src.semantic.schema_loader import SchemaDescriptor, DerivedMetric, DateWindow

_INDENT = "  "


# ── Expression helpers ───────────────────────────────────

def null_safe_div(numerator: str, denominator: str) -> str:
    """``numerator / denominator`` that evaluates to NULL when the denominator is 0 or NULL."""
    return f"{numerator} / NULLIF({denominator}, 0)"


def ratio_sql(
    metric: DerivedMetric,
    ref: Callable[[str], str],
    alias: str | None = None,
    precision: int = 2,
) -> str:
    """Render *metric* as a rounded select item.

    *ref* maps a raw column name to the SQL expression that stands for it,
    e.g. ``lambda c: f"SUM({c})"`` or ``lambda c: f"total_{c}"``.
    """
    expr = null_safe_div(ref(metric.numerator), ref(metric.denominator))
    if metric.scale != 1:
        expr = f"{expr} * {metric.scale}"
    return f"ROUND({expr}, {precision}) AS {alias or metric.name}"


def days_ago(n: int) -> str:
    if n <= 0:
        return "CURRENT_DATE()"
    return f"DATE_SUB(CURRENT_DATE(), INTERVAL {n} DAY)"


def window_predicate(window: DateWindow, column: str = "date") -> str:
    return f"{column} BETWEEN {days_ago(window.start_days_ago)} AND {days_ago(window.end_days_ago)}"


def trailing_predicate(days: int, column: str = "date") -> str:
    return f"{column} >= {days_ago(days)}"


def metric_columns(schema: SchemaDescriptor) -> list[str]:
    """Raw columns used by any derived metric, in first-use order."""
    cols: list[str] = []
    for m in schema.derived_metrics:
        for c in (m.numerator, m.denominator):
            if c not in cols:
                cols.append(c)
    return cols


def _select_block(items: list[str], depth: int = 1) -> list[str]:
    pad = _INDENT * depth
    return [pad + item + ("," if i < len(items) - 1 else "") for i, item in enumerate(items)]


# ── Query builders ───────────────────────────────────────

def period_comparison_sql(
    schema: SchemaDescriptor,
    table_ref: str,
    recent: DateWindow,
    prior: DateWindow,
) -> str:
    """Two aggregated windows unioned, all derived metrics, most recent period first."""
    cols = metric_columns(schema)

    def _period_cte(cte_name: str, window: DateWindow) -> list[str]:
        items = [
            f"'{window.phrase.title()}' AS period",
            f"{days_ago(window.start_days_ago)} AS period_start",
        ] + [f"SUM({c}) AS total_{c}" for c in cols]
        return (
            [f"{cte_name} AS ("]
            + [_INDENT + "SELECT"]
            + _select_block(items, depth=2)
            + [
                f"{_INDENT}FROM {table_ref}",
                f"{_INDENT}WHERE {window_predicate(window)}",
                ")",
            ]
        )

    outer_items = ["period"]
    outer_items += [ratio_sql(m, lambda c: f"total_{c}") for m in schema.derived_metrics]
    outer_items += [f"total_{c}" for c in cols]

    lines: list[str] = ["WITH"]
    lines += _period_cte("current_period", recent)
    lines[-1] += ","
    lines += _period_cte("previous_period", prior)
    lines.append("SELECT")
    lines += _select_block(outer_items)
    lines += [
        "FROM (",
        f"{_INDENT}SELECT * FROM current_period",
        f"{_INDENT}UNION ALL",
        f"{_INDENT}SELECT * FROM previous_period",
        ")",
        "ORDER BY period_start DESC",
    ]
    return "\n".join(lines)


def spend_by_platform_sql(table_ref: str, days: int = 7) -> str:
    """Spend grouped by platform over the trailing *days*, biggest spender first."""
    lines = ["SELECT"]
    lines += _select_block([
        "platform",
        "SUM(spend) AS total_spend",
        "COUNT(DISTINCT date) AS days_active",
    ])
    lines += [
        f"FROM {table_ref}",
        f"WHERE {trailing_predicate(days)}",
        "GROUP BY platform",
        "ORDER BY total_spend DESC",
    ]
    return "\n".join(lines)


def top_campaigns_sql(
    schema: SchemaDescriptor,
    table_ref: str,
    limit: int = 5,
    days: int = 30,
) -> str:
    """Top campaigns by spend over the trailing *days*, with per-campaign CAC."""
    items = ["campaign"]
    cac = schema.metric("CAC")
    if cac is not None:
        items.append(ratio_sql(cac, lambda c: f"SUM({c})"))
    items += [
        "SUM(spend) AS total_spend",
        "SUM(conversions) AS total_conversions",
        "SUM(clicks) AS total_clicks",
    ]
    lines = ["SELECT"]
    lines += _select_block(items)
    lines += [
        f"FROM {table_ref}",
        f"WHERE {trailing_predicate(days)}",
        "GROUP BY campaign",
        "ORDER BY total_spend DESC",
        f"LIMIT {limit}",
    ]
    return "\n".join(lines)


def preview_sql(table_ref: str, limit: int) -> str:
    """Bounded, unfiltered look at the raw table."""
    return f"SELECT * FROM {table_ref} LIMIT {int(limit)}"


def overview_sql(schema: SchemaDescriptor, table_ref: str, days: int = 30) -> str:
    """Totals and overall derived metrics over the trailing *days*."""
    cols = metric_columns(schema)
    items = ["COUNT(DISTINCT date) AS days_with_data"]
    items += [f"SUM({c}) AS total_{c}" for c in cols]
    items += [
        ratio_sql(m, lambda c: f"SUM({c})", alias=f"overall_{m.name.lower()}")
        for m in schema.derived_metrics
    ]
    lines = ["SELECT"]
    lines += _select_block(items)
    lines += [
        f"FROM {table_ref}",
        f"WHERE {trailing_predicate(int(days))}",
    ]
    return "\n".join(lines)
