"""JSON file persistence for session records.

Layout inside the history directory::

    <key>.snapshot.json        working snapshot, replaced on every save
    <key>-<epoch_ms>.json      archive, created once and never overwritten

Both kinds of file are written to a temporary file first. Snapshots are
moved into place with ``os.replace`` so an interrupted write leaves the
previous snapshot intact. Archives are hard-linked to their final name, which
fails instead of overwriting when the name is taken; the millisecond suffix
is then bumped. A failed write never leaves a partial archive behind.

Keys that are not already filename-safe are rewritten and carry a digest of
the raw key, and every load checks the key stored inside the file.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from ..core.codec import dumps_record, loads_record
from ..core.errors import ArchiveWriteError, MalformedEventError, PersistenceError, SnapshotWriteError
from ..core.normalize import session_key_filename
from ..core.types import SessionRecord

SNAPSHOT_SUFFIX = ".snapshot.json"
_MAX_ARCHIVE_NAME_ATTEMPTS = 1000


class JsonFilePersister:
    def __init__(
        self,
        directory: str | os.PathLike[str],
        *,
        indent: int | None = 2,
        logger: logging.Logger | None = None,
    ):
        self._directory = Path(directory)
        self._indent = indent
        self._logger = logger or logging.getLogger(__name__)

    @property
    def directory(self) -> Path:
        return self._directory

    def snapshot_path(self, session_key: str) -> Path:
        return self._directory / f"{session_key_filename(session_key)}{SNAPSHOT_SUFFIX}"

    def snapshot(self, record: SessionRecord) -> None:
        path = self.snapshot_path(record.session_key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            payload = dumps_record(record, indent=self._indent)
            self._directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise SnapshotWriteError(f"failed to write snapshot {path}: {exc}") from exc

    def archive(self, record: SessionRecord) -> str:
        try:
            payload = dumps_record(record, indent=self._indent)
        except (TypeError, ValueError) as exc:
            raise ArchiveWriteError(f"cannot serialize session {record.session_key!r}: {exc}") from exc

        ended_at = record.ended_at or record.started_at
        stamp = int(ended_at.timestamp() * 1000)
        stem = session_key_filename(record.session_key)
        tmp_path = self._directory / f".{stem}.{uuid.uuid4().hex}.tmp"
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            for attempt in range(_MAX_ARCHIVE_NAME_ATTEMPTS):
                path = self._directory / f"{stem}-{stamp + attempt}.json"
                try:
                    os.link(tmp_path, path)
                except FileExistsError:
                    continue
                self._logger.info("Session history archived to %s", path)
                return str(path)
        except OSError as exc:
            raise ArchiveWriteError(f"failed to write archive for {record.session_key!r}: {exc}") from exc
        finally:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as exc:
                self._logger.warning("Could not remove temporary archive %s: %s", tmp_path, exc)
        raise ArchiveWriteError(f"no free archive name for {record.session_key!r} near {stamp}")

    def load_snapshot(self, session_key: str) -> SessionRecord | None:
        path = self.snapshot_path(session_key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"failed to read snapshot {path}: {exc}") from exc
        try:
            record = loads_record(text)
        except MalformedEventError as exc:
            raise PersistenceError(f"snapshot {path} is unreadable: {exc}") from exc
        if record.session_key != session_key.strip():
            raise PersistenceError(f"snapshot {path} belongs to session {record.session_key!r}, not {session_key!r}")
        return record

    def discard_snapshot(self, session_key: str) -> None:
        path = self.snapshot_path(session_key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"failed to remove snapshot {path}: {exc}") from exc

    def archive_paths(self, session_key: str) -> list[Path]:
        stem = session_key_filename(session_key)
        if not self._directory.is_dir():
            return []
        return sorted(
            p
            for p in self._directory.glob(f"{stem}-*.json")
            if p.stem[len(stem) + 1 :].isdigit()
        )

    def find_archive(self, record: SessionRecord) -> str | None:
        for path in self.archive_paths(record.session_key):
            try:
                archived = loads_record(path.read_text(encoding="utf-8"))
            except (OSError, MalformedEventError) as exc:
                self._logger.warning("Skipping unreadable archive %s: %s", path, exc)
                continue
            if archived.session_key == record.session_key and archived.started_at == record.started_at:
                return str(path)
        return None
