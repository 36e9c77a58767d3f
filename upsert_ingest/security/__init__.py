"""
Security package for upsert-ingest.

Cluster configuration loading/caching and Kerberos keytab authentication used by
the connection layer when the cluster is secured.
"""

from upsert_ingest.security.authenticator import (
    Authenticator,
    KerberosIdentity,
    ValidationProblem,
    get_security_context,
    install_security_context,
)
from upsert_ingest.security.configuration import (
    CachedConfiguration,
    ClusterConfiguration,
    ConfigurationCache,
    load_configuration,
)

__all__ = [
    "Authenticator",
    "CachedConfiguration",
    "ClusterConfiguration",
    "ConfigurationCache",
    "KerberosIdentity",
    "ValidationProblem",
    "get_security_context",
    "install_security_context",
    "load_configuration",
]
