"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # ── BigQuery table ───────────────────────────────────
    project_id: str = "ai-biz-6b7ec"
    dataset_id: str = "n8n"
    table_id: str = "ads_spend"
    bigquery_location: str = "US"

    # ── LLM (OpenAI-compatible chat completions) ─────────
    llm_provider: Literal["openrouter", "offline"] = "openrouter"
    llm_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "anthropic/claude-3.5-sonnet"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float | None = None  # None -> httpx default

    # Caller identification sent to the provider
    app_url: str = "http://localhost:3000"
    app_title: str = "Ads Analytics Copilot"

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"
    preview_row_limit: int = 100

    @property
    def table_ref(self) -> str:
        """Backtick-quoted BigQuery reference, e.g. `proj.dataset.table`."""
        return f"`{self.project_id}.{self.dataset_id}.{self.table_id}`"

    @property
    def database_url(self) -> str:
        return f"bigquery://{self.project_id}/{self.dataset_id}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
