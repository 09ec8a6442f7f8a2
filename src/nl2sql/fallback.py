"""
Fallback rule engine -- deterministic question -> SQL when the LLM is unavailable.

Rules are an ordered tuple of ``FallbackRule``.  The question is lower-cased
and matched by substring containment; the first rule whose predicate holds
builds the query.  When nothing matches, the bounded preview is returned.
Order is part of behaviour: earlier rules shadow later ones.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.core.config import Settings, get_settings
from src.core.logging import get_logger
from src.nl2sql import templates
from src.semantic.schema_loader import SchemaDescriptor, load_schema

logger = get_logger(__name__)

_RECENT_WINDOW = "last 30 days"
_PRIOR_WINDOW = "prior 30 days"


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule template needs to render."""
    schema: SchemaDescriptor
    table_ref: str
    preview_limit: int


@dataclass(frozen=True)
class FallbackRule:
    name: str
    predicate: Callable[[str], bool]
    build: Callable[[RuleContext], str]


def _contains_any(q: str, *needles: str) -> bool:
    return any(n in q for n in needles)


# ── Predicates (input is already lower-cased) ────────────

def _wants_period_comparison(q: str) -> bool:
    return _contains_any(q, "cac", "compare") and _RECENT_WINDOW in q and _PRIOR_WINDOW in q


def _wants_spend_by_platform(q: str) -> bool:
    return "spend" in q and "platform" in q


def _wants_top_campaigns(q: str) -> bool:
    return "top" in q and "campaign" in q


# ── Builders ─────────────────────────────────────────────

def _build_period_comparison(ctx: RuleContext) -> str:
    recent = ctx.schema.window(_RECENT_WINDOW)
    prior = ctx.schema.window(_PRIOR_WINDOW)
    if recent is None or prior is None:
        raise ValueError(f"Schema descriptor lacks '{_RECENT_WINDOW}' / '{_PRIOR_WINDOW}' windows")
    return templates.period_comparison_sql(ctx.schema, ctx.table_ref, recent, prior)


def _build_spend_by_platform(ctx: RuleContext) -> str:
    return templates.spend_by_platform_sql(ctx.table_ref, days=7)


def _build_top_campaigns(ctx: RuleContext) -> str:
    return templates.top_campaigns_sql(ctx.schema, ctx.table_ref, limit=5, days=30)


def _build_preview(ctx: RuleContext) -> str:
    return templates.preview_sql(ctx.table_ref, ctx.preview_limit)


RULES: tuple[FallbackRule, ...] = (
    FallbackRule("period_comparison", _wants_period_comparison, _build_period_comparison),
    FallbackRule("spend_by_platform", _wants_spend_by_platform, _build_spend_by_platform),
    FallbackRule("top_campaigns", _wants_top_campaigns, _build_top_campaigns),
)

DEFAULT_RULE = FallbackRule("preview", lambda q: True, _build_preview)


# ── Public API ───────────────────────────────────────────

def select_rule(question: str, rules: tuple[FallbackRule, ...] = RULES) -> FallbackRule:
    """Return the first rule matching *question*, or ``DEFAULT_RULE``."""
    q = (question or "").lower()
    for rule in rules:
        if rule.predicate(q):
            return rule
    return DEFAULT_RULE


def fallback(
    question: str,
    schema: SchemaDescriptor | None = None,
    settings: Settings | None = None,
) -> str:
    """Build a hand-written query for *question*.  Always returns SQL."""
    if schema is None:
        schema = load_schema()
    if settings is None:
        settings = get_settings()

    rule = select_rule(question)
    logger.info("Fallback rule=%s for question=%r", rule.name, question)
    ctx = RuleContext(
        schema=schema,
        table_ref=settings.table_ref,
        preview_limit=settings.preview_row_limit,
    )
    return rule.build(ctx)
