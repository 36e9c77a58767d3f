"""
Per-payload processing: parse, translate, execute, decide the outcome.

Usage:
    from upsert_ingest.processor import UpsertProcessor

    processor = UpsertProcessor(provider, table_name="events")
    outcome = processor.process(payload_bytes)
    outcome.relationship  # Relationship.SUCCESS or Relationship.FAILURE

Parse, authentication and execution errors never escape ``process``: they become a
penalized FAILURE outcome carrying the error. Configuration build errors propagate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from upsert_ingest.domain.models import RecordBatch, UpsertDialect, is_identifier, is_table_name
from upsert_ingest.errors import AuthenticationFailed, ExecutionFailed, ParseError, UpsertIngestError
from upsert_ingest.infrastructure.db_factory import ConnectionProvider
from upsert_ingest.routing import Relationship, Router
from upsert_ingest.sql.executor import BatchExecutor
from upsert_ingest.sql.translator import translate_batch
from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ProcessOutcome:
    """Result of processing one payload."""

    relationship: Relationship
    penalized: bool = False
    records: int = 0
    statements: int = 0
    duration_seconds: float = 0.0
    error: Optional[UpsertIngestError] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.relationship is Relationship.SUCCESS


class UpsertProcessor:
    """
    Turn payloads into committed upsert batches against one table.

    Parameters
    ----------
    provider : ConnectionProvider
        Connection source used for every batch.
    table_name : str
        Target table; required, there is no default.
    dialect : UpsertDialect
        Statement flavour.
    key_columns : sequence of str
        Conflict target for the postgres dialect.
    parameterized : bool
        Bind values through placeholders instead of inlining literals.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        table_name: str,
        dialect: UpsertDialect = UpsertDialect.POSTGRES,
        key_columns: Sequence[str] = (),
        parameterized: bool = True,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")
        if not is_table_name(table_name):
            raise ValueError(f"invalid table name: {table_name!r}")
        for name in key_columns:
            if not is_identifier(name):
                raise ValueError(f"invalid key column: {name!r}")
        self.table_name = table_name
        self.dialect = UpsertDialect(dialect)
        self.key_columns = tuple(key_columns)
        self.executor = BatchExecutor(provider, parameterized=parameterized)

    def process(self, payload: bytes) -> ProcessOutcome:
        start = time.perf_counter()
        try:
            batch = RecordBatch.from_json(payload)
        except ParseError as exc:
            log.error("Failed to parse payload as JSON; routing to failure", extra={"error": str(exc)})
            return ProcessOutcome(Relationship.FAILURE, penalized=True, error=exc)

        statements = translate_batch(self.table_name, batch.records, self.dialect, self.key_columns)
        try:
            result = self.executor.execute(statements)
        except (AuthenticationFailed, ExecutionFailed) as exc:
            log.error(
                "Failed to apply upsert batch; routing to failure",
                extra={"table": self.table_name, "records": len(batch.records), "error": str(exc)},
            )
            return ProcessOutcome(
                Relationship.FAILURE,
                penalized=True,
                records=len(batch.records),
                statements=len(statements),
                duration_seconds=time.perf_counter() - start,
                error=exc,
            )

        return ProcessOutcome(
            Relationship.SUCCESS,
            records=len(batch.records),
            statements=result["statements"],
            duration_seconds=time.perf_counter() - start,
        )

    def on_trigger(self, name: str, payload: bytes, router: Router) -> ProcessOutcome:
        """Process one payload and route the original bytes exactly once."""
        outcome = self.process(payload)
        router.transfer(name, payload, outcome.relationship, penalized=outcome.penalized)
        return outcome


__all__ = ["ProcessOutcome", "UpsertProcessor"]
