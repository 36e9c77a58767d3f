"""
Pytest configuration for upsert-ingest.

Provides fixtures for:
- Database connection management
- A disposable upsert target table
- Settings override for integration tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from upsert_ingest.config import Settings
from upsert_ingest.infrastructure.db_factory import PooledConnectionProvider

TARGET_TABLE = "upsert_target"


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "upsert_ingest"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except Exception:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def upsert_table(db_connection: psycopg.Connection) -> Generator[str, None, None]:
    """
    Create (if needed) and empty the upsert target table around each test.
    """
    with db_connection.cursor() as cur:
        cur.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {TARGET_TABLE} (
                id integer PRIMARY KEY,
                name text,
                score double precision,
                active boolean,
                attrs jsonb
            );
            """
        )
        cur.execute(f"TRUNCATE TABLE {TARGET_TABLE};")
    yield TARGET_TABLE
    with db_connection.cursor() as cur:
        cur.execute(f"TRUNCATE TABLE {TARGET_TABLE};")


@pytest.fixture(scope="function")
def pooled_provider(test_dsn: str, db_connection_available: bool) -> Generator[PooledConnectionProvider, None, None]:
    """
    Real pooled provider against the test database.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    provider = PooledConnectionProvider(test_dsn, min_size=1, max_size=2)
    try:
        yield provider
    finally:
        provider.close()
