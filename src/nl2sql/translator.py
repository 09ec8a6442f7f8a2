"""
Translator -- natural-language question -> candidate SQL via the LLM.

Returns the first completion verbatim; framing cleanup is the sanitizer's job.
Raises ``UpstreamError`` on any provider failure.
"""
from __future__ import annotations

import httpx

from src.core.config import Settings, get_settings
from src.core.logging import get_logger
from src.nl2sql.llm_client import call_llm
from src.nl2sql.prompt import build_system_prompt
from src.semantic.schema_loader import SchemaDescriptor, load_schema

logger = get_logger(__name__)


def translate(
    question: str,
    schema: SchemaDescriptor | None = None,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> str:
    if schema is None:
        schema = load_schema()
    if settings is None:
        settings = get_settings()

    system_prompt = build_system_prompt(schema, settings.table_ref)
    logger.info("Translating question=%r", question)
    raw = call_llm(system_prompt, question, settings=settings, client=client)
    logger.info("Raw LLM output: %r", raw)
    return raw
