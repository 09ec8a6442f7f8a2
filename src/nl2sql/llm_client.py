"""
LLM client -- one chat-completion round trip to the configured provider.

Supported providers:
  openrouter -- any OpenAI-compatible /chat/completions endpoint (OpenRouter default)
  offline    -- never calls out; always fails so callers take their fallback path

Every failure surfaces as ``UpstreamError``: missing key, malformed base URL,
transport error, non-2xx status, non-JSON body, missing or blank completion.
No retries.
"""
from __future__ import annotations

from typing import Any, Callable

import httpx

from src.core.config import Settings, get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


class UpstreamError(RuntimeError):
    """The language-model call did not produce a usable completion."""


def _headers(settings: Settings) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.llm_api_key}",
        "Content-Type": "application/json",
    }
    if settings.app_url:
        headers["HTTP-Referer"] = settings.app_url
    if settings.app_title:
        headers["X-Title"] = settings.app_title
    return headers


def _extract_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamError(f"Malformed completion response: missing {exc}") from exc
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError("Completion response contained no text")
    return content


def _call_offline(
    system_prompt: str,
    question: str,
    settings: Settings,
    client: httpx.Client | None,
) -> str:
    raise UpstreamError("LLM provider is 'offline'")


def _call_openrouter(
    system_prompt: str,
    question: str,
    settings: Settings,
    client: httpx.Client | None,
) -> str:
    """POST to {llm_base_url}/chat/completions and return the first completion."""
    if not settings.llm_api_key:
        raise UpstreamError(
            "llm_api_key is not set.  "
            "Set LLM_API_KEY in your .env file or environment."
        )

    url = f"{settings.llm_base_url.rstrip('/')}/chat/completions"
    payload = {
        "model": settings.llm_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": question},
        ],
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
    }
    kwargs: dict[str, Any] = {"headers": _headers(settings), "json": payload}
    if settings.llm_timeout_seconds is not None:
        kwargs["timeout"] = settings.llm_timeout_seconds

    try:
        if client is None:
            with httpx.Client() as own_client:
                response = own_client.post(url, **kwargs)
        else:
            response = client.post(url, **kwargs)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        raise UpstreamError(
            f"LLM provider returned HTTP {exc.response.status_code}"
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise UpstreamError(f"LLM request failed: {exc}") from exc
    except ValueError as exc:
        raise UpstreamError("LLM provider returned a non-JSON body") from exc

    text = _extract_content(data)
    logger.info("LLM response (%d chars)", len(text))
    return text


_PROVIDERS: dict[str, Callable[[str, str, Settings, httpx.Client | None], str]] = {
    "openrouter": _call_openrouter,
    "offline": _call_offline,
}


def call_llm(
    system_prompt: str,
    question: str,
    provider: str | None = None,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Send a (system, user) exchange to the configured (or overridden) provider.

    Parameters
    ----------
    system_prompt : str
        Fixed instruction text sent as the first message.
    question : str
        The user's raw question, sent verbatim as the second message.
    provider : str, optional
        Override the provider from settings.  One of: openrouter, offline.
    settings : Settings, optional
        Defaults to ``get_settings()``.
    client : httpx.Client, optional
        Reuse an existing client (tests inject a ``MockTransport`` here).
    """
    if settings is None:
        settings = get_settings()
    if provider is None:
        provider = settings.llm_provider.lower()

    fn = _PROVIDERS.get(provider)
    if fn is None:
        raise UpstreamError(
            f"LLM provider '{provider}' is not supported.  "
            f"Choose from: {', '.join(_PROVIDERS)}"
        )

    logger.info("Calling LLM provider=%s  model=%s  question_len=%d",
                provider, settings.llm_model, len(question))
    return fn(system_prompt, question, settings, client)
