"""
Infrastructure package for upsert-ingest.

Centralizes database connectivity concerns (pooling, Kerberos-aware providers).
Keep this layer focused on I/O and resource management, decoupled from
translation and routing logic.
"""

from upsert_ingest.infrastructure.db_factory import (
    ConnectionProvider,
    KerberosConnectionProvider,
    PooledConnectionProvider,
    build_conninfo,
    provider_from_settings,
)

__all__ = [
    "ConnectionProvider",
    "KerberosConnectionProvider",
    "PooledConnectionProvider",
    "build_conninfo",
    "provider_from_settings",
]
