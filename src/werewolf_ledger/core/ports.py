from __future__ import annotations

from typing import Protocol

from .types import SessionRecord


class PersisterPort(Protocol):
    """Durable storage for session records.

    Implementations raise :class:`~werewolf_ledger.core.errors.PersistenceError`
    subclasses on failure and never partially overwrite an archive.
    ``load_snapshot`` refuses a stored record whose key differs from the one
    asked for. ``find_archive`` names the archive already holding the same
    game (same key and start time), if any.
    """

    def snapshot(self, record: SessionRecord) -> None:
        ...

    def archive(self, record: SessionRecord) -> str:
        ...

    def load_snapshot(self, session_key: str) -> SessionRecord | None:
        ...

    def discard_snapshot(self, session_key: str) -> None:
        ...

    def find_archive(self, record: SessionRecord) -> str | None:
        ...
