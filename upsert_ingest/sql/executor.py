"""
Batch execution of upsert statements.

All statements of one payload travel together: one pooled connection, one cursor,
one transaction. With libpq pipeline support the whole batch is flushed in a single
round trip; without it the statements are sent one by one inside the same
transaction. Either the commit succeeds and every statement is applied, or the
transaction is rolled back and ExecutionFailed is raised.
"""

from __future__ import annotations

import time
from contextlib import nullcontext
from typing import ContextManager, Sequence, TypedDict

import psycopg
from psycopg import Connection

from upsert_ingest.domain.models import UpsertStatement
from upsert_ingest.errors import ExecutionFailed
from upsert_ingest.infrastructure.db_factory import ConnectionProvider
from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)


class BatchResult(TypedDict):
    """Outcome of a committed batch."""

    statements: int
    duration_seconds: float


def _batch_context(conn: Connection) -> ContextManager[object]:
    if psycopg.Pipeline.is_supported():
        return conn.pipeline()
    return nullcontext()


class BatchExecutor:
    """
    Submit a sequence of statements as one atomic batch.

    Parameters
    ----------
    provider : ConnectionProvider
        Source of pooled connections; one connection is held per call.
    parameterized : bool
        Bind values through placeholders (default). When False the literal text
        from ``UpsertStatement.render()`` is sent instead.
    """

    def __init__(self, provider: ConnectionProvider, parameterized: bool = True) -> None:
        self.provider = provider
        self.parameterized = parameterized

    def execute(self, statements: Sequence[UpsertStatement]) -> BatchResult:
        start = time.perf_counter()
        try:
            with self.provider.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        with _batch_context(conn):
                            for statement in statements:
                                if self.parameterized:
                                    sql, params = statement.parameterized()
                                    cur.execute(sql, params)
                                else:
                                    cur.execute(statement.render())
                    conn.commit()
                except psycopg.Error:
                    if not conn.closed:
                        conn.rollback()
                    raise
        except psycopg.Error as exc:
            log.warning(
                "Batch rolled back",
                extra={"statements": len(statements), "error": str(exc)},
            )
            raise ExecutionFailed(
                f"Batch of {len(statements)} statement(s) failed: {exc}"
            ) from exc

        duration = time.perf_counter() - start
        log.info(
            "Batch committed",
            extra={"statements": len(statements), "duration_seconds": round(duration, 4)},
        )
        return BatchResult(statements=len(statements), duration_seconds=duration)


def execute(
    provider: ConnectionProvider,
    statements: Sequence[UpsertStatement],
    parameterized: bool = True,
) -> BatchResult:
    """Convenience wrapper around ``BatchExecutor(provider).execute(statements)``."""
    return BatchExecutor(provider, parameterized=parameterized).execute(statements)


__all__ = ["BatchExecutor", "BatchResult", "execute"]
