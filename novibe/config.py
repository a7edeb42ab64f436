from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

DATA_DIR = Path(__file__).parent / "data"

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-pro",
    "anthropic": "claude-haiku-4-5-20251001",
    "openai": "gpt-4o-mini",
    "openai_compatible": "gpt-4o-mini",
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings(BaseModel):
    database_url: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL", "").strip() or f"sqlite:///{DATA_DIR / 'novibe.db'}"
    )

    llm_provider: str = Field(default_factory=lambda: os.getenv("LLM_PROVIDER", "gemini").strip().lower())
    llm_model: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", "").strip())
    frankenstein_model: str = Field(
        default_factory=lambda: os.getenv("FRANKENSTEIN_MODEL", "").strip() or "gemini-2.5-flash-lite"
    )
    tts_model: str = Field(
        default_factory=lambda: os.getenv("TTS_MODEL", "").strip() or "gemini-2.5-flash-preview-tts"
    )
    tts_voice: str = Field(default_factory=lambda: os.getenv("TTS_VOICE", "").strip() or "Kore")

    gemini_api_key: str = Field(default_factory=lambda: os.getenv("GEMINI_API_KEY", "").strip())
    anthropic_api_key: str = Field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", "").strip())
    openai_api_key: str = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY", "").strip())
    openai_base_url: str = Field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", "").strip())

    auth_jwt_secret: str = Field(default_factory=lambda: os.getenv("AUTH_JWT_SECRET", "").strip())
    auth_jwt_audience: str = Field(
        default_factory=lambda: os.getenv("AUTH_JWT_AUDIENCE", "").strip() or "authenticated"
    )
    auth_jwt_algorithm: str = Field(
        default_factory=lambda: os.getenv("AUTH_JWT_ALGORITHM", "").strip() or "HS256"
    )

    credit_system_enabled: bool = Field(default_factory=lambda: _env_bool("CREDIT_SYSTEM_ENABLED", True))
    default_credits: int = Field(default_factory=lambda: _env_int("DEFAULT_CREDITS", 3))

    mock_mode: bool = Field(default_factory=lambda: _env_bool("MOCK_MODE", False))
    mock_scenario: str = Field(default_factory=lambda: os.getenv("MOCK_SCENARIO", "").strip() or "success")

    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "").strip().upper() or "INFO")
    mcp_user_id: str = Field(default_factory=lambda: os.getenv("NOVIBE_MCP_USER_ID", "").strip())

    def model_for(self, provider: str | None = None) -> str:
        """Configured model, or the provider default when LLM_MODEL is unset."""
        return self.llm_model or DEFAULT_MODELS.get(provider or self.llm_provider, "")

    def api_key_for(self, provider: str | None = None) -> str:
        provider = provider or self.llm_provider
        if provider == "gemini":
            return self.gemini_api_key
        if provider == "anthropic":
            return self.anthropic_api_key
        if provider in ("openai", "openai_compatible"):
            return self.openai_api_key
        return ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
