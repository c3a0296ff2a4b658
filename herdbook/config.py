from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Default DB file: ./herdbook.db (relative to current working directory)
    # Override with env var, e.g.
    #     DATABASE_URL=sqlite:////data/herdbook.db
    database_url: str = "sqlite:///./herdbook.db"
    log_level: str = "INFO"
    environment: str = "dev"
    app_title: str = "Herdbook"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
