"""
Domain models for upsert-ingest.

A payload is one JSON document holding either a single object or an array of
objects. Each object becomes an immutable Record; the records of one payload form a
RecordBatch. Records are translated into UpsertStatement values, which know how to
render themselves as literal SQL or as placeholder SQL with bound parameters.
"""
from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple, Union

from psycopg.types.json import Jsonb
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from upsert_ingest.errors import ParseError

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(Union[List[Dict[str, Any]], Dict[str, Any]])

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_TABLE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?")


def is_identifier(name: str) -> bool:
    """True for a plain SQL identifier: a letter or underscore, then letters, digits, underscores."""
    return bool(_IDENTIFIER.fullmatch(name))


def is_table_name(name: str) -> bool:
    """True for a plain identifier, optionally schema-qualified (``schema.table``)."""
    return bool(_TABLE_NAME.fullmatch(name))


class Record(BaseModel):
    """
    One input row: field name to JSON value.

    Field order follows the source document and is the column order used for the
    generated statement.
    """

    data: Dict[str, Any] = Field(default_factory=dict, description="Field values by name.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": False,
    }

    @field_validator("data")
    @classmethod
    def _check_field_names(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        # Field names become column names in the statement text
        bad = [name for name in data if not is_identifier(name)]
        if bad:
            raise ValueError(f"field names are not valid column identifiers: {bad!r}")
        return data

    def field_names(self) -> Tuple[str, ...]:
        return tuple(self.data)


class RecordBatch(BaseModel):
    """
    Ordered records extracted from one payload.
    """

    records: Tuple[Record, ...] = Field(default_factory=tuple)

    model_config = {"frozen": True}

    @classmethod
    def from_json(cls, payload: Union[bytes, str]) -> "RecordBatch":
        """
        Parse a payload into a batch.

        A top-level object is normalized to a one-record batch. Invalid JSON, a
        top-level scalar, an array holding anything other than objects, or a field
        name that is not a plain identifier raises ParseError.
        """
        try:
            document = _PAYLOAD_ADAPTER.validate_json(payload)
        except ValidationError as exc:
            raise ParseError(f"Payload is not a JSON object or array of objects: {exc}") from exc

        if isinstance(document, dict):
            document = [document]
        try:
            return cls(records=tuple(Record(data=item) for item in document))
        except ValidationError as exc:
            raise ParseError(f"Payload holds an unusable record: {exc}") from exc


class UpsertDialect(str, enum.Enum):
    """SQL flavour used to express insert-or-update."""

    PHOENIX = "phoenix"
    POSTGRES = "postgres"


def quote_literal(value: Any) -> str:
    """
    Render a JSON value as a SQL literal.

    Strings are single-quoted with embedded quotes doubled; every other value uses
    its JSON text form (numbers, true/false, null, compact nested JSON).
    """
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return json.dumps(value, separators=(",", ":"))


def bind_value(value: Any) -> Any:
    """Python value to bind for a placeholder; nested structures go over as jsonb."""
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


@dataclass(frozen=True)
class UpsertStatement:
    """
    A single insert-or-update statement for one record.

    ``columns`` and ``values`` always have the same length and position i of each
    describes the same field.
    """

    table: str
    columns: Tuple[str, ...]
    values: Tuple[Any, ...]
    dialect: UpsertDialect = UpsertDialect.PHOENIX
    key_columns: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not is_table_name(self.table):
            raise ValueError(f"invalid table name: {self.table!r}")
        for name in (*self.columns, *self.key_columns):
            if not is_identifier(name):
                raise ValueError(f"invalid column name: {name!r}")
        if len(self.columns) != len(self.values):
            raise ValueError(
                f"column/value length mismatch: {len(self.columns)} != {len(self.values)}"
            )

    def _compose(self, rendered_values: Sequence[str]) -> str:
        column_list = ", ".join(self.columns)
        value_list = ",".join(rendered_values)
        if self.dialect is UpsertDialect.PHOENIX:
            return f"UPSERT INTO {self.table} ({column_list}) VALUES ({value_list})"
        return (
            f"INSERT INTO {self.table} ({column_list}) VALUES ({value_list})"
            f" {self._conflict_clause()}"
        )

    def _conflict_clause(self) -> str:
        if not self.key_columns:
            return "ON CONFLICT DO NOTHING"
        target = ", ".join(self.key_columns)
        updates = [c for c in self.columns if c not in self.key_columns]
        if not updates:
            return f"ON CONFLICT ({target}) DO NOTHING"
        assignments = ", ".join(f"{c} = EXCLUDED.{c}" for c in updates)
        return f"ON CONFLICT ({target}) DO UPDATE SET {assignments}"

    def render(self) -> str:
        """Literal SQL text with every value inlined."""
        return self._compose([quote_literal(v) for v in self.values])

    def parameterized(self, placeholder: str = "%s") -> Tuple[str, Tuple[Any, ...]]:
        """SQL text with one placeholder per value, plus the values to bind."""
        sql = self._compose([placeholder] * len(self.values))
        return sql, tuple(bind_value(v) for v in self.values)

    def __str__(self) -> str:
        return self.render()


__all__ = [
    "Record",
    "RecordBatch",
    "UpsertDialect",
    "UpsertStatement",
    "bind_value",
    "is_identifier",
    "is_table_name",
    "quote_literal",
]
