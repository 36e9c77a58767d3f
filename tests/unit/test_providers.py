from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest
from psycopg.conninfo import conninfo_to_dict

from upsert_ingest.config import Settings
from upsert_ingest.errors import AuthenticationFailed
from upsert_ingest.infrastructure import db_factory
from upsert_ingest.infrastructure.db_factory import (
    ConnectionProvider,
    KerberosConnectionProvider,
    PooledConnectionProvider,
    build_conninfo,
    provider_from_settings,
)
from upsert_ingest.security.authenticator import Authenticator, KerberosIdentity
from upsert_ingest.security.configuration import ConfigurationCache

CONNINFO = "host=db.example port=5432 user=ingest dbname=warehouse"
PRINCIPAL = "ingest/host@EXAMPLE.COM"
CCACHE = "FILE:/tmp/krb5cc_provider_test"


class FakePool:
    instances = []

    def __init__(self, conninfo, min_size, max_size, open):
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.closed = False
        FakePool.instances.append(self)

    @contextmanager
    def connection(self):
        yield object()

    def close(self):
        self.closed = True


class RecordingAuthenticator(Authenticator):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.logins = []
        self.preloads = []

    def preload(self, configuration) -> None:
        self.preloads.append(configuration)

    def login(self, configuration, principal, keytab_path) -> KerberosIdentity:
        self.logins.append((principal, keytab_path))
        return KerberosIdentity(principal=principal, ccache=self.ccache)


@pytest.fixture(autouse=True)
def fake_pool(monkeypatch):
    FakePool.instances = []
    monkeypatch.setattr(db_factory, "ConnectionPool", FakePool)
    monkeypatch.setenv("KRB5CCNAME", "FILE:/tmp/original")
    return FakePool


def write_site(path: Path, authentication: str) -> str:
    path.write_text(
        "<configuration><property><name>hadoop.security.authentication</name>"
        f"<value>{authentication}</value></property></configuration>",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def keytab(tmp_path: Path) -> str:
    path = tmp_path / "ingest.keytab"
    path.write_bytes(b"\x05\x02")
    return str(path)


def make_kerberos_provider(descriptor: str, principal=PRINCIPAL, keytab_path=None):
    authenticator = RecordingAuthenticator(ConfigurationCache(), ccache=CCACHE)
    provider = KerberosConnectionProvider(
        authenticator,
        descriptor=descriptor,
        principal=principal,
        keytab_path=keytab_path,
        conninfo=CONNINFO,
        max_size=4,
        service_name="pgsvc",
    )
    return provider, authenticator


def test_build_conninfo_uses_settings_and_overrides():
    settings = Settings(db_host="db.example", db_port=6543, db_user="u", db_password="p", db_name="d")

    params = conninfo_to_dict(build_conninfo(settings, application_name="ingest"))

    assert params["host"] == "db.example"
    assert params["port"] == "6543"
    assert params["dbname"] == "d"
    assert params["application_name"] == "ingest"


def test_pool_is_opened_lazily_and_reused():
    provider = PooledConnectionProvider(CONNINFO, min_size=1, max_size=3)
    assert FakePool.instances == []

    with provider.connection():
        pass
    with provider.connection():
        pass

    (pool,) = FakePool.instances
    assert pool.conninfo == CONNINFO
    assert pool.max_size == 3
    assert isinstance(provider, ConnectionProvider)


def test_close_releases_pool_and_allows_reopen():
    with PooledConnectionProvider(CONNINFO) as provider:
        with provider.connection():
            pass
    first = FakePool.instances[0]

    assert first.closed is True
    assert provider._pool_instance is None

    with provider.connection():
        pass
    assert len(FakePool.instances) == 2


def test_kerberos_provider_logs_in_before_opening_pool(tmp_path, keytab):
    provider, authenticator = make_kerberos_provider(
        write_site(tmp_path / "core-site.xml", "kerberos"), keytab_path=keytab
    )

    with provider.connection():
        pass

    (pool,) = FakePool.instances
    assert authenticator.logins == [(PRINCIPAL, keytab)]
    assert len(authenticator.preloads) == 1
    assert conninfo_to_dict(pool.conninfo)["krbsrvname"] == "pgsvc"
    assert db_factory.os.environ["KRB5CCNAME"] == CCACHE
    assert provider.identity.principal == PRINCIPAL


def test_kerberos_provider_skips_login_when_security_disabled(tmp_path):
    provider, authenticator = make_kerberos_provider(
        write_site(tmp_path / "core-site.xml", "simple"), principal=None
    )

    with provider.connection():
        pass

    (pool,) = FakePool.instances
    assert authenticator.logins == []
    assert pool.conninfo == CONNINFO
    assert provider.identity is None


def test_kerberos_provider_rejects_invalid_credentials(tmp_path):
    provider, authenticator = make_kerberos_provider(
        write_site(tmp_path / "core-site.xml", "kerberos"), keytab_path=str(tmp_path / "absent.keytab")
    )

    with pytest.raises(AuthenticationFailed, match="does not exist or is not readable"):
        with provider.connection():
            pass

    assert authenticator.logins == []
    assert FakePool.instances == []


def test_provider_from_settings_picks_variant(tmp_path):
    plain = provider_from_settings(Settings(config_resources=""))
    secured = provider_from_settings(
        Settings(config_resources=write_site(tmp_path / "core-site.xml", "kerberos"), kerberos_ccache=CCACHE)
    )

    assert type(plain) is PooledConnectionProvider
    assert isinstance(secured, KerberosConnectionProvider)
    assert secured.authenticator.ccache == CCACHE


def test_relogin_renews_ticket_without_reopening_pool(tmp_path, keytab):
    provider, authenticator = make_kerberos_provider(
        write_site(tmp_path / "core-site.xml", "kerberos"), keytab_path=keytab
    )
    with provider.connection():
        pass

    identity = provider.relogin()

    assert authenticator.logins == [(PRINCIPAL, keytab), (PRINCIPAL, keytab)]
    assert identity is provider.identity
    assert len(FakePool.instances) == 1
    assert FakePool.instances[0].closed is False


def test_relogin_is_a_no_op_when_security_disabled(tmp_path):
    provider, authenticator = make_kerberos_provider(
        write_site(tmp_path / "core-site.xml", "simple"), principal=None
    )

    assert provider.relogin() is None
    assert authenticator.logins == []
