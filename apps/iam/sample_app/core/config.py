from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "TypeDB IAM sample app"
    log_level: str = "INFO"

    typedb_edition: str = "core"
    typedb_address: str = "127.0.0.1:1729"
    typedb_username: str = "admin"
    typedb_password: str = "password"
    typedb_tls_enabled: bool = True

    database_name: str = "sample_app_db"
    schema_file: str = "iam-schema.tql"
    data_file: str = "iam-data-single-query.tql"
    # Number of users in data_file; keep in sync when the seed data changes.
    expected_user_count: int = Field(default=3, ge=0)
    reset_policy: str = "ask"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
