"""
Configuration settings for upsert-ingest.

Uses Pydantic Settings to load environment variables for database connections,
Kerberos security, upsert translation and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("upsert_ingest", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Upsert translation
    upsert_table: Optional[str] = Field(None, alias="UPSERT_TABLE")
    upsert_dialect: str = Field("postgres", alias="UPSERT_DIALECT")
    upsert_key_columns: str = Field("", alias="UPSERT_KEY_COLUMNS")
    upsert_parameterized: bool = Field(True, alias="UPSERT_PARAMETERIZED")

    # Security (Kerberos)
    config_resources: str = Field("", alias="CONFIG_RESOURCES")
    kerberos_principal: Optional[str] = Field(None, alias="KERBEROS_PRINCIPAL")
    kerberos_keytab: Optional[str] = Field(None, alias="KERBEROS_KEYTAB")
    kerberos_ccache: str = Field("FILE:/tmp/krb5cc_upsert_ingest", alias="KERBEROS_CCACHE")
    kerberos_service_name: str = Field("postgres", alias="KERBEROS_SERVICE_NAME")
    kinit_path: str = Field("kinit", alias="KINIT_PATH")

    # Ingest
    ingest_max_attempts: int = Field(1, alias="INGEST_MAX_ATTEMPTS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def key_columns(self) -> List[str]:
        """Conflict key columns parsed from the comma-separated setting."""
        return [name.strip() for name in self.upsert_key_columns.split(",") if name.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
