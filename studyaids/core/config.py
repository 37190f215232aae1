"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Every scalar the request-governance core consumes lives here and is passed
into the core explicitly; nothing under studyaids/llm reads settings itself.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # LLM backend
    # ------------------------------------------------------------------
    llm_provider:     str = "openai"      # "openai" | "azure_openai" | "none"
    openai_api_key:   str = ""            # empty = fallback (demo) generation
    openai_base_url:  str = ""            # OpenAI-compatible endpoint override
    llm_model:        str = "gpt-4o-mini"
    llm_max_tokens:   int = 2048
    llm_schema_mode:  bool = True         # request json_schema output first

    # Azure OpenAI
    azure_openai_api_key:     str = ""
    azure_openai_endpoint:    str = ""
    azure_openai_deployment:  str = "gpt-4o-mini"
    azure_openai_api_version: str = "2024-08-01-preview"

    # ------------------------------------------------------------------
    # Request governance
    # ------------------------------------------------------------------
    llm_requests_per_minute:      int = 20
    llm_concurrency:              int = 2
    llm_queue_max_depth:          int = 256
    llm_retries:                  int = 4
    llm_retry_base_delay_ms:      int = 800
    llm_max_attempts:             int = 3
    rate_window_safety_margin_ms: int = 250

    # ------------------------------------------------------------------
    # Chunking + pacing
    # ------------------------------------------------------------------
    summary_chunk_chars:  int  = 8_000
    spread_enabled:       bool = True
    spread_min_chars:     int  = 30_000
    spread_max_chars:     int  = 150_000
    spread_max_delay_ms:  int  = 20_000
    chunk_pause_ms:       int  = 1_200   # used only when the spread is zero
    max_input_chars:      int  = 150_000

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    ocr_backend:          str = "tesseract"   # "tesseract" | "unstructured" | "none"
    ocr_langs:            str = "eng"         # tesseract language codes, "+"-joined
    ocr_dpi:              int = 200
    ocr_timeout_seconds:  int = 120
    min_chars_per_page:   int = 50
    max_upload_bytes:     int = 30 * 1024 * 1024

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    langsmith_api_key: str = ""
    langsmith_project: str = "pdf-study-aids"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env:         str  = "development"   # development | staging | production
    debug:           bool = False
    allowed_origins: str  = ""               # comma-separated; empty = allow all
    port:            int  = 8787

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def generation_configured(self) -> bool:
        """True when a generation backend has enough credentials to be built."""
        provider = self.llm_provider.lower()
        if provider == "openai":
            return bool(self.openai_api_key)
        if provider == "azure_openai":
            return bool(self.azure_openai_api_key and self.azure_openai_endpoint)
        return False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
