"""
Domain package for upsert-ingest.

Exports the records parsed from payloads and the statements generated from them.
Keep this package focused on data definitions and validation concerns.
"""

from upsert_ingest.domain.models import (
    Record,
    RecordBatch,
    UpsertDialect,
    UpsertStatement,
)

__all__ = [
    "Record",
    "RecordBatch",
    "UpsertDialect",
    "UpsertStatement",
]
