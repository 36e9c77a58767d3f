"""
upsert-ingest - load JSON record batches into a database as atomic upsert batches.

The package covers:

- Parsing payloads (one JSON object or an array of objects) into record batches
- Translating each record into an insert-or-update statement
- Executing a payload's statements as one transactional batch over a pooled connection
- Kerberos keytab authentication and cached cluster configuration for secured clusters
- Routing each payload to a success or failure destination
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from upsert_ingest.config import Settings, get_settings
from upsert_ingest.domain.models import Record, RecordBatch, UpsertDialect, UpsertStatement
from upsert_ingest.errors import (
    AuthenticationFailed,
    ConfigurationBuildFailed,
    ExecutionFailed,
    ParseError,
    UpsertIngestError,
)
from upsert_ingest.infrastructure.db_factory import (
    ConnectionProvider,
    KerberosConnectionProvider,
    PooledConnectionProvider,
    provider_from_settings,
)
from upsert_ingest.processor import ProcessOutcome, UpsertProcessor
from upsert_ingest.routing import DirectoryRouter, Relationship, Router
from upsert_ingest.security.authenticator import Authenticator, KerberosIdentity, ValidationProblem
from upsert_ingest.security.configuration import (
    CachedConfiguration,
    ClusterConfiguration,
    ConfigurationCache,
    load_configuration,
)
from upsert_ingest.sql.executor import BatchExecutor, BatchResult, execute
from upsert_ingest.sql.translator import translate, translate_batch
from upsert_ingest.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "RecordBatch",
    "UpsertDialect",
    "UpsertStatement",
    # Errors
    "UpsertIngestError",
    "ParseError",
    "AuthenticationFailed",
    "ConfigurationBuildFailed",
    "ExecutionFailed",
    # Connections
    "ConnectionProvider",
    "PooledConnectionProvider",
    "KerberosConnectionProvider",
    "provider_from_settings",
    # Security
    "Authenticator",
    "KerberosIdentity",
    "ValidationProblem",
    "CachedConfiguration",
    "ClusterConfiguration",
    "ConfigurationCache",
    "load_configuration",
    # Translation and execution
    "translate",
    "translate_batch",
    "BatchExecutor",
    "BatchResult",
    "execute",
    # Processing and routing
    "UpsertProcessor",
    "ProcessOutcome",
    "Relationship",
    "Router",
    "DirectoryRouter",
    # Logging
    "configure_logging",
    "get_logger",
]
