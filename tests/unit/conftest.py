"""
In-memory stand-ins for pooled connections used by the unit tests.

FakeConnection models a single transaction: executed statements are pending until
commit and discarded on rollback, so tests can assert what a batch left behind.
"""

from __future__ import annotations

from contextlib import contextmanager, nullcontext
from typing import Any, Callable, Iterator, List, Optional, Tuple

import psycopg
import pytest


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self.closed = False

    def execute(self, sql: str, params: Optional[Tuple[Any, ...]] = None) -> None:
        self._conn.executed.append((sql, params))
        if self._conn.fail_on == len(self._conn.executed):
            raise psycopg.ProgrammingError(f"syntax error in statement {self._conn.fail_on}")
        self._conn.pending.append((sql, params))

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self.closed = True
        return False


class FakeConnection:
    def __init__(self, fail_on: Optional[int] = None) -> None:
        self.fail_on = fail_on
        self.closed = False
        self.executed: List[Tuple[str, Any]] = []
        self.pending: List[Tuple[str, Any]] = []
        self.committed: List[Tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.pipelines = 0
        self.cursors: List[FakeCursor] = []

    def cursor(self) -> FakeCursor:
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def pipeline(self):
        self.pipelines += 1
        return nullcontext()

    def commit(self) -> None:
        self.commits += 1
        self.committed.extend(self.pending)
        self.pending.clear()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.pending.clear()


class FakeProvider:
    def __init__(self, conn: Optional[FakeConnection] = None, error: Optional[Exception] = None) -> None:
        self.conn = conn or FakeConnection()
        self.error = error
        self.acquired = 0
        self.released = 0
        self.closed = False

    @contextmanager
    def connection(self) -> Iterator[FakeConnection]:
        if self.error is not None:
            raise self.error
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def failing_provider() -> FakeProvider:
    """Provider whose connection fails on the second statement of a batch."""
    return FakeProvider(FakeConnection(fail_on=2))


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    def factory(fail_on: Optional[int] = None, error: Optional[Exception] = None) -> FakeProvider:
        return FakeProvider(FakeConnection(fail_on=fail_on), error=error)

    return factory
