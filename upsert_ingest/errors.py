"""
Exception taxonomy for the upsert ingestion pipeline.

Every error raised by the package derives from UpsertIngestError. Wrapping errors are
raised with ``raise ... from exc`` so the driver/OS/parser error stays reachable
through ``cause``.
"""

from __future__ import annotations

from typing import Optional


class UpsertIngestError(Exception):
    """Base class for all pipeline errors."""

    @property
    def cause(self) -> Optional[BaseException]:
        """The underlying error this one was raised from, if any."""
        return self.__cause__


class ParseError(UpsertIngestError):
    """Input payload is not a JSON object or an array of JSON objects."""


class AuthenticationFailed(UpsertIngestError):
    """Keytab/principal login against the cluster failed."""


class ConfigurationBuildFailed(UpsertIngestError):
    """Building a cluster configuration from its resource files failed."""


class ExecutionFailed(UpsertIngestError):
    """Batch submission or commit failed; nothing from the batch was applied."""


__all__ = [
    "UpsertIngestError",
    "ParseError",
    "AuthenticationFailed",
    "ConfigurationBuildFailed",
    "ExecutionFailed",
]
