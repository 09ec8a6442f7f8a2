"""
Unit tests -- fallback rule engine: rule priority and rendered templates.
"""
import re
import pytest
from src.core.config import Settings
from src.nl2sql.fallback import RULES, DEFAULT_RULE, select_rule, fallback
from src.semantic.schema_loader import load_schema


TABLE = "`proj.ds.ads`"


@pytest.fixture(scope="module")
def settings():
    return Settings(project_id="proj", dataset_id="ds", table_id="ads", preview_row_limit=100)


@pytest.fixture(scope="module")
def schema():
    return load_schema()


def _sql(question, schema, settings):
    return fallback(question, schema=schema, settings=settings)


# ── Rule order ───────────────────────────────────────────

def test_rule_order_is_fixed():
    assert [r.name for r in RULES] == ["period_comparison", "spend_by_platform", "top_campaigns"]


def test_default_rule_is_preview():
    assert DEFAULT_RULE.name == "preview"


# ── Rule selection ───────────────────────────────────────

def test_period_comparison_selected():
    rule = select_rule("Compare CAC and metrics for last 30 days vs prior 30 days")
    assert rule.name == "period_comparison"


def test_period_comparison_beats_later_rules():
    """Mentions spend, platform, top and campaign too -- rule 1 still wins."""
    q = "Compare top campaign spend by platform for last 30 days vs prior 30 days"
    assert select_rule(q).name == "period_comparison"


def test_period_comparison_needs_both_windows():
    assert select_rule("Compare CAC for last 30 days").name == "preview"
    assert select_rule("CAC in the prior 30 days").name == "preview"


def test_period_comparison_needs_cac_or_compare():
    assert select_rule("spend last 30 days and prior 30 days").name == "preview"


def test_partial_period_match_falls_through_to_platform():
    assert select_rule("Compare spend by platform for last 30 days").name == "spend_by_platform"


def test_spend_by_platform_selected():
    assert select_rule("What is the total spend by platform?").name == "spend_by_platform"


def test_spend_by_platform_beats_top_campaigns():
    assert select_rule("top campaign spend per platform").name == "spend_by_platform"


def test_top_campaigns_selected():
    assert select_rule("Show me the top 5 campaigns by total spend").name == "top_campaigns"


def test_no_match_is_preview():
    assert select_rule("hello").name == "preview"


def test_matching_is_case_insensitive():
    assert select_rule("TOTAL SPEND BY PLATFORM").name == "spend_by_platform"


def test_matching_is_substring_based():
    # "cac" inside another word still counts
    assert select_rule("cacti compared, last 30 days vs prior 30 days").name == "period_comparison"


def test_empty_question_is_preview():
    assert select_rule("").name == "preview"


# ── Rendered SQL ─────────────────────────────────────────

def test_period_comparison_sql(schema, settings):
    sql = _sql("Compare CAC and metrics for last 30 days vs prior 30 days", schema, settings)
    assert sql.startswith("WITH")
    assert "UNION ALL" in sql
    assert "'Last 30 Days' AS period" in sql
    assert "'Prior 30 Days' AS period" in sql
    assert "date BETWEEN DATE_SUB(CURRENT_DATE(), INTERVAL 30 DAY) AND CURRENT_DATE()" in sql
    assert (
        "date BETWEEN DATE_SUB(CURRENT_DATE(), INTERVAL 60 DAY) "
        "AND DATE_SUB(CURRENT_DATE(), INTERVAL 31 DAY)"
    ) in sql
    for metric in ("CAC", "CPC", "CTR", "CVR"):
        assert f"AS {metric}" in sql
    assert sql.rstrip().endswith("ORDER BY period_start DESC")
    assert TABLE in sql


def test_period_comparison_recent_window_sorts_first(schema, settings):
    """period_start of the recent window is the later date, so DESC puts it first."""
    sql = _sql("compare last 30 days and prior 30 days", schema, settings)
    recent = sql.index("DATE_SUB(CURRENT_DATE(), INTERVAL 30 DAY) AS period_start")
    prior = sql.index("DATE_SUB(CURRENT_DATE(), INTERVAL 60 DAY) AS period_start")
    assert recent < prior


def test_spend_by_platform_sql(schema, settings):
    sql = _sql("What is the total spend by platform?", schema, settings)
    assert "GROUP BY platform" in sql
    assert "ORDER BY total_spend DESC" in sql
    assert "date >= DATE_SUB(CURRENT_DATE(), INTERVAL 7 DAY)" in sql
    assert "SUM(spend) AS total_spend" in sql


def test_top_campaigns_sql(schema, settings):
    sql = _sql("Show me the top 5 campaigns by total spend", schema, settings)
    assert "GROUP BY campaign" in sql
    assert "ORDER BY total_spend DESC" in sql
    assert sql.rstrip().endswith("LIMIT 5")
    assert "date >= DATE_SUB(CURRENT_DATE(), INTERVAL 30 DAY)" in sql
    assert "ROUND(SUM(spend) / NULLIF(SUM(conversions), 0), 2) AS CAC" in sql


def test_preview_sql(schema, settings):
    sql = _sql("hello", schema, settings)
    assert sql == "SELECT * FROM `proj.ds.ads` LIMIT 100"
    assert "WHERE" not in sql


def test_preview_limit_from_settings(schema):
    s = Settings(project_id="proj", dataset_id="ds", table_id="ads", preview_row_limit=10)
    assert fallback("hello", schema=schema, settings=s).endswith("LIMIT 10")


@pytest.mark.parametrize("question", [
    "Compare CAC and metrics for last 30 days vs prior 30 days",
    "What is the total spend by platform?",
    "Show me the top 5 campaigns by total spend",
    "hello",
    "",
])
def test_fallback_always_returns_sql(question, schema, settings):
    sql = _sql(question, schema, settings)
    assert sql.strip()
    assert sql.count("`") % 2 == 0


@pytest.mark.parametrize("question", [
    "Compare CAC and metrics for last 30 days vs prior 30 days",
    "Show me the top 5 campaigns by total spend",
])
def test_every_division_is_null_safe(question, schema, settings):
    sql = _sql(question, schema, settings)
    divisors = re.findall(r"/\s*(\S+)", sql)
    assert divisors, "expected at least one ratio"
    assert all(d.startswith("NULLIF(") for d in divisors)
