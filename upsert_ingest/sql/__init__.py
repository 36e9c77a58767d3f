"""
SQL package for upsert-ingest: record translation and atomic batch execution.
"""

from upsert_ingest.sql.executor import BatchExecutor, BatchResult, execute
from upsert_ingest.sql.translator import translate, translate_batch

__all__ = [
    "BatchExecutor",
    "BatchResult",
    "execute",
    "translate",
    "translate_batch",
]
