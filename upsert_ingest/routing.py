"""
Outcome routing for processed payloads.

Every payload ends in exactly one relationship: SUCCESS forwards the original bytes
unchanged, FAILURE forwards them penalized. The hosting environment supplies the
Router; DirectoryRouter is the one used by the CLI.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from upsert_ingest.utils.logging import get_logger

log = get_logger(__name__)


class Relationship(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@runtime_checkable
class Router(Protocol):
    """Routing primitive provided by the host."""

    def transfer(
        self, name: str, payload: bytes, relationship: Relationship, penalized: bool = False
    ) -> None:
        ...


class DirectoryRouter:
    """
    Write routed payloads into ``<root>/success`` or ``<root>/failure``.

    Penalized payloads get a ``.penalized`` suffix so a re-run picking files up from
    the failure directory can tell them apart.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def transfer(
        self, name: str, payload: bytes, relationship: Relationship, penalized: bool = False
    ) -> None:
        target_dir = self.root / relationship.value
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / (f"{name}.penalized" if penalized else name)
        target.write_bytes(payload)
        log.info(
            "Payload routed",
            extra={"name": name, "relationship": relationship.value, "path": str(target)},
        )


__all__ = ["DirectoryRouter", "Relationship", "Router"]
