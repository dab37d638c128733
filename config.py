"""
config.py — Single source of truth for all search + summarization settings.

pydantic-settings reads .env at import time and types every field. Unlike a
service that cannot start without its keys, every field here has a default:
an unconfigured LLM provider is dropped from the fallback chain and an
unconfigured search provider fails per query, so importing the package (and
running the unit tests) never needs a .env file.

THE SETTINGS THAT SHAPE BEHAVIOUR:

  1. fallback_chain — ordered "provider:model" entries.
       The CompletionService tries them in order until one returns content.
       "openrouter:google/gemini-2.0-flash-001" splits on the FIRST colon,
       so model ids containing colons survive.

  2. Fetch timeouts — two independent limits:
       fast_fetch_timeout_seconds  — plain HTTP GET (most pages)
       heavy_fetch_timeout_seconds — headless browser render (JS pages)

  3. min_content_chars — the sufficiency cutoff for the fast path.
       Text shorter than this is treated as "probably needs JavaScript".

  4. top_n — how many of the leading URLs feed the general summary.

USAGE:
  from config import settings
  print(settings.fallback_chain)          # ["openrouter:...", "deepseek:..."]
  print(settings.fast_fetch_timeout_seconds)  # 5.0
"""

from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── LLM providers ─────────────────────────────────────────────────────────
    # OpenRouter, DeepSeek and OpenAI all speak the OpenAI wire protocol and
    # differ only by base URL and key. Azure needs its own client type.
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    deepseek_api_key: str = Field(default="", description="DeepSeek API key")
    deepseek_base_url: str = Field(default="https://api.deepseek.com")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    azure_openai_endpoint: str = Field(
        default="",
        description="Azure OpenAI endpoint URL — blank disables the azure provider",
    )
    azure_openai_api_key: str = Field(
        default="",
        description="API key — leave blank to use DefaultAzureCredential",
    )
    azure_api_version: str = Field(default="2025-04-01-preview")

    # ── Completion ────────────────────────────────────────────────────────────
    fallback_chain: list[str] = Field(
        default=[
            "openrouter:google/gemini-2.0-flash-001",
            "deepseek:deepseek-chat",
        ],
        description="Ordered provider:model pairs tried until one returns content",
    )
    completion_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Low temperature for deterministic-leaning summaries",
    )

    # ── Search ────────────────────────────────────────────────────────────────
    search_provider: Literal["bing", "google", "tavily"] = Field(default="bing")
    bing_api_key: str = Field(default="")
    bing_endpoint: str = Field(default="https://api.bing.microsoft.com/v7.0/search")
    google_api_key: str = Field(default="")
    google_search_engine_id: str = Field(default="")
    tavily_api_key: str = Field(default="")
    max_search_results: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Hits requested per search query",
    )
    search_timeout_seconds: float = Field(default=30.0)

    # ── Aggregation ───────────────────────────────────────────────────────────
    enable_query_expansion: bool = Field(
        default=True,
        description="Ask the LLM for alternative phrasings of the query",
    )
    max_alternative_queries: int = Field(default=3, ge=0, le=3)
    enable_reranking: bool = Field(
        default=True,
        description="Ask the LLM to re-order the merged hits by relevance",
    )
    rerank_allow_partial: bool = Field(
        default=False,
        description="Accept a ranking that omits URLs by appending the missing ones",
    )

    # ── Fetching ──────────────────────────────────────────────────────────────
    fast_fetch_timeout_seconds: float = Field(
        default=5.0,
        description="Max seconds for the plain HTTP GET",
    )
    heavy_fetch_timeout_seconds: float = Field(
        default=20.0,
        description="Max seconds for headless-browser navigation",
    )
    min_content_chars: int = Field(
        default=150,
        ge=0,
        description="Fast-path text shorter than this falls back to the browser",
    )
    fast_extractor: Literal["soup", "trafilatura"] = Field(
        default="soup",
        description="'soup' strips markup; 'trafilatura' tries main-content extraction first",
    )
    browser_headless: bool = Field(default=True)

    # ── Summarization ─────────────────────────────────────────────────────────
    top_n: int = Field(
        default=5,
        ge=1,
        description="Leading URLs whose partial summaries feed the general summary",
    )
    max_page_words: int = Field(
        default=6000,
        ge=100,
        description="Page text is truncated to this many words before summarizing",
    )
    webpage_summary_sentences: int = Field(default=4, ge=1)
    general_summary_paragraphs: int = Field(default=3, ge=1)
    max_urls_per_run: int = Field(
        default=8,
        ge=1,
        description="How many search hits run_query() summarizes",
    )

    # ── Observability ─────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_dir: str = Field(
        default="logs/",
        description="Directory for structured JSON run traces",
    )


# Module-level singleton — import this everywhere, never instantiate Settings again.
settings = Settings()
