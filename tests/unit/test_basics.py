from upsert_ingest import config
from upsert_ingest.config import Settings


def test_get_settings_defaults(monkeypatch):
    for name in ("DB_HOST", "DB_PORT", "DB_USER", "DB_NAME", "UPSERT_DIALECT", "CONFIG_RESOURCES"):
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    try:
        settings = config.get_settings()
    finally:
        config.get_settings.cache_clear()

    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_user == "postgres"
    assert settings.db_name == "upsert_ingest"
    assert settings.upsert_dialect == "postgres"
    assert settings.upsert_parameterized is True
    assert settings.config_resources == ""
    assert settings.ingest_max_attempts >= 1


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("UPSERT_TABLE", "events")
    monkeypatch.setenv("UPSERT_KEY_COLUMNS", " id, tenant ,,")
    monkeypatch.setenv("DB_POOL_MAX_SIZE", "3")

    settings = Settings()

    assert settings.upsert_table == "events"
    assert settings.key_columns == ["id", "tenant"]
    assert settings.db_pool_max_size == 3


def test_key_columns_empty_by_default():
    assert Settings(upsert_key_columns="").key_columns == []
