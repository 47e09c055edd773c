from __future__ import annotations

from datetime import datetime
from typing import Protocol


class SnapshotRepo(Protocol):
    def get(self, session_key: str): ...
    def upsert(
        self,
        session_key: str,
        record_json: str,
        rounds_completed: int,
        days_completed: int,
    ): ...
    def delete(self, session_key: str) -> int: ...


class ArchiveRepo(Protocol):
    def name_taken(self, archive_name: str) -> bool: ...
    def add(
        self,
        archive_name: str,
        session_key: str,
        winner: str | None,
        started_at: datetime,
        ended_at: datetime | None,
        duration_ms: int | None,
        record_json: str,
    ): ...
    def get_by_name(self, archive_name: str): ...
    def list_by_session(self, session_key: str): ...


class UnitOfWork(Protocol):
    snapshots: SnapshotRepo
    archives: ArchiveRepo

    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
