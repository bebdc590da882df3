"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "plan-tracker"
    app_env: str = "dev"
    database_url: str = ""
    store_backend: Literal["postgres", "memory"] = "postgres"
    store_connect_timeout_s: float = Field(default=5.0, ge=1.0)
    mirror_backend: Literal["chroma", "memory", "disabled"] = "chroma"
    chroma_persist_path: str = ""
    chroma_collection: str = "plan_tracker_mirror"
    mirror_search_limit: int = Field(default=5, ge=1)
    mirror_flush_timeout_s: float = Field(default=5.0, ge=0.0)
    validate_dependencies: bool = False
    plan_title: str = "Task Plan"

    model_config = SettingsConfigDict(
        env_prefix="PLAN_TRACKER_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_chroma_persist_path(self) -> Path:
        if self.chroma_persist_path:
            return Path(self.chroma_persist_path).expanduser().resolve()
        return (PROJECT_ROOT / "data" / "plan_mirror_chroma").resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
