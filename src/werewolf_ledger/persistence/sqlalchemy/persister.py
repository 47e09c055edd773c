from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ...core.codec import dumps_record, loads_record
from ...core.errors import ArchiveWriteError, MalformedEventError, PersistenceError, SnapshotWriteError
from ...core.types import SessionRecord
from ..interfaces import UnitOfWork

_MAX_ARCHIVE_NAME_ATTEMPTS = 1000


class SQLAlchemyPersister:
    """Snapshots as one upserted row per session key, archives as insert-only rows."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        *,
        indent: int | None = None,
        logger: logging.Logger | None = None,
    ):
        self._uow_factory = uow_factory
        self._indent = indent
        self._logger = logger or logging.getLogger(__name__)

    def snapshot(self, record: SessionRecord) -> None:
        try:
            payload = dumps_record(record, indent=self._indent)
            with self._uow_factory() as uow:
                uow.snapshots.upsert(
                    session_key=record.session_key,
                    record_json=payload,
                    rounds_completed=len(record.rounds),
                    days_completed=len(record.days),
                )
                uow.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise SnapshotWriteError(f"failed to store snapshot for {record.session_key!r}: {exc}") from exc

    def archive(self, record: SessionRecord) -> str:
        ended_at = record.ended_at or record.started_at
        base = f"{record.session_key}-{int(ended_at.timestamp() * 1000)}"
        try:
            payload = dumps_record(record, indent=self._indent)
            with self._uow_factory() as uow:
                name = base
                for attempt in range(1, _MAX_ARCHIVE_NAME_ATTEMPTS + 1):
                    if not uow.archives.name_taken(name):
                        break
                    name = f"{base}-{attempt}"
                else:
                    raise ArchiveWriteError(f"no free archive name for {record.session_key!r}")
                uow.archives.add(
                    archive_name=name,
                    session_key=record.session_key,
                    winner=record.winner,
                    started_at=record.started_at,
                    ended_at=record.ended_at,
                    duration_ms=record.duration_ms,
                    record_json=payload,
                )
                uow.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise ArchiveWriteError(f"failed to store archive for {record.session_key!r}: {exc}") from exc
        self._logger.info("Session history archived as %s", name)
        return name

    def load_snapshot(self, session_key: str) -> SessionRecord | None:
        try:
            with self._uow_factory() as uow:
                row = uow.snapshots.get(session_key)
                payload = row.record_json if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read snapshot for {session_key!r}: {exc}") from exc
        if payload is None:
            return None
        try:
            record = loads_record(payload)
        except MalformedEventError as exc:
            raise PersistenceError(f"snapshot for {session_key!r} is unreadable: {exc}") from exc
        if record.session_key != session_key:
            raise PersistenceError(f"snapshot row {session_key!r} holds session {record.session_key!r}")
        return record

    def discard_snapshot(self, session_key: str) -> None:
        try:
            with self._uow_factory() as uow:
                uow.snapshots.delete(session_key)
                uow.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to remove snapshot for {session_key!r}: {exc}") from exc

    def find_archive(self, record: SessionRecord) -> str | None:
        try:
            with self._uow_factory() as uow:
                rows = [(row.archive_name, row.record_json) for row in uow.archives.list_by_session(record.session_key)]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to list archives for {record.session_key!r}: {exc}") from exc
        for name, payload in rows:
            try:
                archived = loads_record(payload)
            except MalformedEventError:
                self._logger.warning("Skipping unreadable archive %s", name)
                continue
            if archived.started_at == record.started_at:
                return name
        return None

    def load_archive(self, archive_name: str) -> SessionRecord | None:
        try:
            with self._uow_factory() as uow:
                row = uow.archives.get_by_name(archive_name)
                payload = row.record_json if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read archive {archive_name!r}: {exc}") from exc
        if payload is None:
            return None
        try:
            return loads_record(payload)
        except MalformedEventError as exc:
            raise PersistenceError(f"archive {archive_name!r} is unreadable: {exc}") from exc
