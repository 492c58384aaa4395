# backend/tutorsched/core/config.py
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# backend/.env supplies local overrides; CI sets everything through the environment.
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
if not os.getenv("CI"):
    load_dotenv(_ENV_FILE)


class Settings(BaseSettings):
    """Runtime settings for the scheduling engine.

    The deployment environment used by the safety gate is intentionally absent:
    operators pass it explicitly on every destructive call.
    """

    database_url: str = Field(
        default="sqlite+pysqlite:///./tutorsched.db",
        description="SQLAlchemy URL of the session store",
    )
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=5, ge=0)
    db_pool_timeout: int = Field(default=5, ge=1, description="Seconds to wait for a pooled connection")
    db_echo: bool = False

    audit_enabled: bool = Field(default=True, description="Persist audit rows for schedule mutations")
    log_level: str = Field(default="INFO")

    preview_sample_limit: int = Field(default=10, ge=0, le=100)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
