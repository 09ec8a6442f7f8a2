"""
NL-to-SQL service -- LLM translation first, rule-based fallback second.

    question -> translate --ok--> sanitize -> SQL
                   |
                   +--UpstreamError--> fallback -> sanitize -> SQL

Callers always get a non-empty query string back.  Translator failures are
logged, never raised.
"""
from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from src.core.config import Settings, get_settings
from src.core.logging import get_logger
from src.nl2sql.fallback import fallback, select_rule
from src.nl2sql.llm_client import UpstreamError
from src.nl2sql.sanitizer import sanitize
from src.nl2sql.translator import translate
from src.semantic.schema_loader import SchemaDescriptor, load_schema

logger = get_logger(__name__)

SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"


@dataclass
class TranslationResult:
    question: str
    sql: str
    source: str              # "llm" | "fallback"
    rule: str | None = None  # fallback rule name when source == "fallback"
    latency_ms: int = 0


def convert(
    question: str,
    schema: SchemaDescriptor | None = None,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> TranslationResult:
    """Translate *question* to SQL, falling back to the rule engine on any LLM failure."""
    t0 = time.perf_counter()
    if schema is None:
        schema = load_schema()
    if settings is None:
        settings = get_settings()

    try:
        sql = sanitize(translate(question, schema=schema, settings=settings, client=client))
        if not sql:
            raise UpstreamError("LLM output was empty after sanitising")
        source, rule = SOURCE_LLM, None
    except UpstreamError as exc:
        logger.warning("LLM translation failed (%s) -- using fallback rules", exc)
        sql = sanitize(fallback(question, schema=schema, settings=settings))
        source, rule = SOURCE_FALLBACK, select_rule(question).name

    latency = int((time.perf_counter() - t0) * 1000)
    logger.info("NL->SQL | source=%s | rule=%s | latency_ms=%d | sql=%r",
                source, rule, latency, sql)
    return TranslationResult(
        question=question, sql=sql, source=source, rule=rule, latency_ms=latency,
    )


def translate_or_fallback(
    question: str,
    schema: SchemaDescriptor | None = None,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Return a usable query string for *question*.  Never raises on LLM failure."""
    return convert(question, schema=schema, settings=settings, client=client).sql
