"""
Unit tests -- SQL template helpers and the metrics-overview query.
"""
import re
import pytest
from src.nl2sql.templates import (
    null_safe_div,
    ratio_sql,
    days_ago,
    trailing_predicate,
    metric_columns,
    overview_sql,
    preview_sql,
)
from src.semantic.schema_loader import load_schema, DerivedMetric


@pytest.fixture(scope="module")
def schema():
    return load_schema()


# ── Expression helpers ───────────────────────────────────

def test_null_safe_div():
    assert null_safe_div("a", "b") == "a / NULLIF(b, 0)"


def test_ratio_sql_plain():
    m = DerivedMetric(name="CPC", description="", numerator="spend", denominator="clicks")
    assert ratio_sql(m, lambda c: f"SUM({c})") == "ROUND(SUM(spend) / NULLIF(SUM(clicks), 0), 2) AS CPC"


def test_ratio_sql_scaled_and_aliased():
    m = DerivedMetric(name="CTR", description="", numerator="clicks", denominator="impressions", scale=100)
    out = ratio_sql(m, lambda c: f"total_{c}", alias="ctr_pct")
    assert out == "ROUND(total_clicks / NULLIF(total_impressions, 0) * 100, 2) AS ctr_pct"


def test_days_ago_zero_is_today():
    assert days_ago(0) == "CURRENT_DATE()"


def test_days_ago_n():
    assert days_ago(7) == "DATE_SUB(CURRENT_DATE(), INTERVAL 7 DAY)"


def test_trailing_predicate():
    assert trailing_predicate(30) == "date >= DATE_SUB(CURRENT_DATE(), INTERVAL 30 DAY)"


def test_metric_columns_first_use_order(schema):
    assert metric_columns(schema) == ["spend", "conversions", "clicks", "impressions"]


def test_preview_sql():
    assert preview_sql("`a.b.c`", 25) == "SELECT * FROM `a.b.c` LIMIT 25"


# ── Overview ─────────────────────────────────────────────

def test_overview_sql_shape(schema):
    sql = overview_sql(schema, "`a.b.c`", days=14)
    assert sql.startswith("SELECT")
    assert "COUNT(DISTINCT date) AS days_with_data" in sql
    assert "FROM `a.b.c`" in sql
    assert "WHERE date >= DATE_SUB(CURRENT_DATE(), INTERVAL 14 DAY)" in sql
    for alias in ("overall_cac", "overall_cpc", "overall_ctr", "overall_cvr"):
        assert f"AS {alias}" in sql
    for col in ("spend", "clicks", "impressions", "conversions"):
        assert f"SUM({col}) AS total_{col}" in sql


def test_overview_divisions_null_safe(schema):
    sql = overview_sql(schema, "`a.b.c`")
    divisors = re.findall(r"/\s*(\S+)", sql)
    assert len(divisors) == 4
    assert all(d.startswith("NULLIF(") for d in divisors)
