"""
Record to upsert statement translation.

One record becomes one statement: the record's field names form the column list
and their values the value list, walked in a single pass so both lists share the
same order. Translation is pure and never touches the database.

Usage:
    from upsert_ingest.sql.translator import translate

    stmt = translate("T", Record(data={"id": 1, "name": "Ann"}))
    stmt.render()  # "UPSERT INTO T (id, name) VALUES (1,'Ann')"
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from upsert_ingest.domain.models import Record, RecordBatch, UpsertDialect, UpsertStatement


def translate(
    table_name: str,
    record: Record,
    dialect: UpsertDialect = UpsertDialect.PHOENIX,
    key_columns: Sequence[str] = (),
) -> UpsertStatement:
    """
    Translate one record into an upsert statement for ``table_name``.

    An empty record produces empty column and value lists; the statement is still
    returned so the caller sees exactly what would be sent.
    """
    columns: List[str] = []
    values: List[object] = []
    for name, value in record.data.items():
        columns.append(name)
        values.append(value)
    return UpsertStatement(
        table=table_name,
        columns=tuple(columns),
        values=tuple(values),
        dialect=UpsertDialect(dialect),
        key_columns=tuple(key_columns),
    )


def translate_batch(
    table_name: str,
    batch: RecordBatch | Iterable[Record],
    dialect: UpsertDialect = UpsertDialect.PHOENIX,
    key_columns: Sequence[str] = (),
) -> List[UpsertStatement]:
    """Translate every record of a batch, preserving record order."""
    records = batch.records if isinstance(batch, RecordBatch) else batch
    return [translate(table_name, record, dialect, key_columns) for record in records]


__all__ = ["translate", "translate_batch"]
