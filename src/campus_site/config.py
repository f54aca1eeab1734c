"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str | None = None
    supabase_service_key: str | None = None
    store_backend: str = "supabase"
    host: str = "0.0.0.0"
    port: int = 3001
    public_origin: str = "http://localhost:3001"
    uploads_dir: str = "uploads"
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    cors_origins: str = "*"
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_cors_origins(raw: str | None) -> list[str]:
    """Parse allowed CORS origins from env."""
    if raw is None:
        return ["*"]
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return ["*"]
    origins = [chunk.strip().rstrip("/") for chunk in cleaned.split(",")]
    return [origin for origin in origins if origin] or ["*"]
