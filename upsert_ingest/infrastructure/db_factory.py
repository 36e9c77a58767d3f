"""
Database connection providers for upsert-ingest.

Provides pooled PostgreSQL connections with explicit lifecycle management. The
Kerberos-aware provider resolves the cluster configuration, preloads it, and logs
in with the configured keytab before opening its pool, so every pooled connection
authenticates through GSSAPI with the resulting credential cache.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Any, ContextManager, Generator, List, Optional, Protocol, runtime_checkable

from psycopg import Connection
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool

from upsert_ingest.config import Settings, get_settings
from upsert_ingest.errors import AuthenticationFailed
from upsert_ingest.security.authenticator import Authenticator, KerberosIdentity, ValidationProblem
from upsert_ingest.security.configuration import ConfigurationCache
from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)


def build_conninfo(settings: Optional[Settings] = None, **overrides: Any) -> str:
    """Compose a libpq connection string from settings plus keyword overrides."""
    settings = settings or get_settings()
    return make_conninfo(
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        dbname=settings.db_name,
        **overrides,
    )


@runtime_checkable
class ConnectionProvider(Protocol):
    """
    Source of live database connections.

    ``connection()`` is a context manager: the connection is exclusively held for
    the duration of the block and returned on every exit path.
    """

    def connection(self) -> ContextManager[Connection]:
        ...

    def close(self) -> None:
        ...


class PooledConnectionProvider:
    """
    Thread-safe owner of a psycopg ConnectionPool.

    The pool is opened lazily on first use and closed by ``close()`` (or on leaving
    a ``with`` block). A closed provider reopens a fresh pool on the next request.
    """

    def __init__(self, conninfo: str, min_size: int = 1, max_size: int = 10) -> None:
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self._lock = threading.Lock()
        self._pool_instance: Optional[ConnectionPool] = None

    def _make_pool(self, conninfo: str) -> ConnectionPool:
        return ConnectionPool(
            conninfo=conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            open=True,
        )

    def _open_pool(self) -> ConnectionPool:
        return self._make_pool(self.conninfo)

    def _get_pool(self) -> ConnectionPool:
        with self._lock:
            if self._pool_instance is None:
                self._pool_instance = self._open_pool()
                log.debug(
                    "Connection pool opened",
                    extra={"min_size": self.min_size, "max_size": self.max_size},
                )
            return self._pool_instance

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a connection from the pool.

        Example
        -------
            with provider.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        pool = self._get_pool()
        with pool.connection() as conn:
            yield conn

    def close(self) -> None:
        """Close the pool and release its connections."""
        with self._lock:
            if self._pool_instance is not None:
                try:
                    self._pool_instance.close()
                except Exception as exc:  # noqa: BLE001 - best-effort cleanup
                    log.debug("Error while closing pool", extra={"error": str(exc)})
                finally:
                    self._pool_instance = None

    def __enter__(self) -> "PooledConnectionProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class KerberosConnectionProvider(PooledConnectionProvider):
    """
    Pooled provider that authenticates before opening its pool when the cluster
    configuration named by ``descriptor`` has security enabled.

    With security disabled it behaves like PooledConnectionProvider.

    Login happens once, when the pool opens, and the credential cache is exported
    process-wide through KRB5CCNAME. Nothing renews the ticket on its own: a
    long-lived provider must call ``relogin()`` before the ticket lifetime runs out,
    or connections the pool opens afterwards fail GSSAPI authentication.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        descriptor: str,
        principal: Optional[str],
        keytab_path: Optional[str],
        conninfo: str,
        min_size: int = 1,
        max_size: int = 10,
        service_name: str = "postgres",
    ) -> None:
        super().__init__(conninfo, min_size=min_size, max_size=max_size)
        self.authenticator = authenticator
        self.descriptor = descriptor
        self.principal = principal
        self.keytab_path = keytab_path
        self.service_name = service_name
        self.identity: Optional[KerberosIdentity] = None

    def validate(self) -> List[ValidationProblem]:
        """Pre-flight check of principal/keytab against the current configuration."""
        return self.authenticator.validate(self.descriptor, self.principal, self.keytab_path)

    def relogin(self) -> Optional[KerberosIdentity]:
        """
        Obtain a fresh ticket into the same credential cache.

        The open pool is kept; connections it opens from now on use the new ticket.
        Returns None when the configuration does not have security enabled.
        """
        configuration = self.authenticator.configuration(self.descriptor)
        if not configuration.security_enabled:
            return None
        self.identity = self.authenticator.login(
            configuration, self.principal or "", self.keytab_path or ""
        )
        return self.identity

    def _open_pool(self) -> ConnectionPool:
        configuration = self.authenticator.configuration(self.descriptor)
        self.authenticator.preload(configuration)

        conninfo = self.conninfo
        if configuration.security_enabled:
            problems = self.validate()
            if problems:
                raise AuthenticationFailed(
                    "; ".join(problem.explanation for problem in problems)
                )
            self.identity = self.authenticator.login(
                configuration, self.principal or "", self.keytab_path or ""
            )
            # libpq's GSSAPI support only reads the credential cache from the environment
            os.environ["KRB5CCNAME"] = self.identity.ccache
            conninfo = make_conninfo(conninfo, krbsrvname=self.service_name)

        return self._make_pool(conninfo)


def provider_from_settings(
    settings: Optional[Settings] = None,
    authenticator: Optional[Authenticator] = None,
) -> PooledConnectionProvider:
    """
    Build the provider matching the settings: Kerberos-aware when configuration
    resources are set, plain pooled otherwise.
    """
    settings = settings or get_settings()
    conninfo = build_conninfo(settings)
    if not settings.config_resources.strip():
        return PooledConnectionProvider(
            conninfo, min_size=settings.db_pool_min_size, max_size=settings.db_pool_max_size
        )

    authenticator = authenticator or Authenticator(
        ConfigurationCache(),
        ccache=settings.kerberos_ccache,
        kinit_path=settings.kinit_path,
    )
    return KerberosConnectionProvider(
        authenticator,
        descriptor=settings.config_resources,
        principal=settings.kerberos_principal,
        keytab_path=settings.kerberos_keytab,
        conninfo=conninfo,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        service_name=settings.kerberos_service_name,
    )


__all__ = [
    "ConnectionProvider",
    "KerberosConnectionProvider",
    "PooledConnectionProvider",
    "build_conninfo",
    "provider_from_settings",
]
