from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=os.getenv(
            "ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")
        ),
        case_sensitive=True,
    )

    API_V1_STR: str = "/api/v1"

    # JWT configuration (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Use an absolute path so running the app from different directories
    # always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'printshop.db'}"

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    FRONTEND_URL: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    # Realtime router
    WS_SEND_TIMEOUT: float = 10.0
    WS_DB_CONCURRENCY: int = 8
    WS_MAX_BEARER_LEN: int = 4096
    # Re-check order participancy on the socket path before persisting a
    # chat message, same as the REST send path.
    WS_ENFORCE_ORDER_ACCESS: bool = True

    CHAT_MESSAGE_MAX_LEN: int = 1000

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("FRONTEND_URL", "SECRET_KEY", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("WS_DB_CONCURRENCY", mode="after")
    def positive_concurrency(cls, v: int) -> int:
        return v if v > 0 else 8


def load_settings() -> "Settings":
    return Settings()


settings = load_settings()


def _dedupe(seq: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for item in seq:
        key = item.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        ordered.append(key)
    return ordered


def _collect_frontend_origins() -> list[str]:
    origins: list[str] = list(settings.CORS_ORIGINS or [])
    base = (settings.FRONTEND_URL or "").strip()
    if base:
        origins.append(base.rstrip("/"))
    return _dedupe(origins)


FRONTEND_ORIGINS = _collect_frontend_origins()
