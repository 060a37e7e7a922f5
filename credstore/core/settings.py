from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "credstore"
    env: str = "local"
    log_level: str = "INFO"

    api_v1_prefix: str = "/v1"

    cors_allow_origins: list[str] = ["*"]
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # An explicit DATABASE_URL wins over the PG_* parts.
    database_url: str | None = None
    pg_user: str = "postgres"
    pg_password: str = "postgres"
    pg_host: str = "127.0.0.1"
    pg_port: int = 5432
    pg_database: str = "default"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    db_retry_max_attempts: int = 3
    db_retry_base_delay_seconds: float = 0.2
    db_retry_max_delay_seconds: float = 2.0
    db_circuit_failure_threshold: int = 5
    db_circuit_recovery_seconds: int = 30

    migrations_dir: Path = Path("migrations")
    queries_dir: Path = Path("queries")
    migrate_on_startup: bool = True
    migrations_validate_checksums: bool = True
    migrations_ignore_missing: bool = False

    accounts_default_page_size: int = 10
    accounts_max_page_size: int = 100

    request_timeout_seconds: float = 30.0
    startup_db_attempts: int = 30

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        url = URL.create(
            "postgresql+psycopg",
            username=self.pg_user,
            password=self.pg_password,
            host=self.pg_host,
            port=self.pg_port,
            database=self.pg_database,
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
