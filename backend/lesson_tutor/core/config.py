import json

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Resolve backend root (…/backend/) regardless of current working directory
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"

class Settings(BaseSettings):
    # Read backend/.env; tolerate unknown keys so a shared .env does not break startup
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Lesson Tutor"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    # One origin or several, comma-separated or a JSON list
    # Example: "http://localhost:3000,https://example.com"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    DATABASE_URL: str = "sqlite:///./lesson_tutor.db"
    # Seconds to wait for a pooled connection before failing the request.
    DB_POOL_TIMEOUT_SEC: int = 10
    # PostgreSQL only: server-side statement timeout applied to every connection.
    DB_STATEMENT_TIMEOUT_MS: int = 15000

    # ===== Identity =====
    # When AUTH_ENABLED=false the caller identifies itself with the X-User-Id header
    # (the session layer in front of this service has already verified it).
    # When true, a bearer JWT is required and its "sub" claim is the identity.
    AUTH_ENABLED: bool = False
    JWT_SECRET_KEY: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"

    # ===== Generation service =====
    # OPENAI_API_KEY: required for OpenAI Cloud.
    # OPENAI_BASE_URL: OpenAI-compatible gateway or local server (Ollama/LM Studio);
    # the key may then be left empty.
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"

    # Keep retries low: the orchestrator does not retry and the learner is waiting.
    OPENAI_HTTP_TIMEOUT_SEC: int = 30
    OPENAI_MAX_RETRIES: int = 1

    # ===== Transcript provider (Mux) =====
    MUX_TOKEN_ID: str | None = None
    MUX_TOKEN_SECRET: str | None = None
    MUX_API_BASE_URL: str = "https://api.mux.com"
    MUX_STREAM_BASE_URL: str = "https://stream.mux.com"
    TRANSCRIPT_HTTP_TIMEOUT_SEC: int = 8
    # Language code preferred when a lesson has several generated caption tracks ("en", "tr", ...).
    TRANSCRIPT_PREFERRED_LANGUAGE: str | None = None
    TRANSCRIPT_MAX_CHARS: int = 50_000

    # ===== Chat cost controls =====
    CHAT_RATE_LIMIT: int = 20
    CHAT_RATE_WINDOW_SEC: int = 60
    # Prior messages sent to the model per request (hard cap, not token-aware).
    CHAT_HISTORY_WINDOW: int = 14
    # Messages returned by the history endpoint.
    CHAT_HISTORY_LIST_LIMIT: int = 50
    CHAT_MAX_OUTPUT_TOKENS: int = 350
    CHAT_TEMPERATURE: float = 0.3
    SUGGESTIONS_MAX: int = 5

    # ===== Lesson summary cache =====
    SUMMARY_MAX_SOURCE_CHARS: int = 20_000
    SUMMARY_DESCRIPTION_MAX_CHARS: int = 4000
    SUMMARY_MAX_OUTPUT_TOKENS: int = 280
    SUMMARY_TEMPERATURE: float = 0.2

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if v is None or v == "":
            return []

        if isinstance(v, list):
            return v

        # Strings: prefer a JSON list, fall back to comma-separated
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]

        return v


settings = Settings()
