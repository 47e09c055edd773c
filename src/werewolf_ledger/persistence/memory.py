from __future__ import annotations

from ..core.codec import dumps_record, loads_record
from ..core.errors import ArchiveWriteError, MalformedEventError, PersistenceError, SnapshotWriteError
from ..core.types import SessionRecord


class InMemoryPersister:
    """Keeps serialized snapshots and archives in dicts.

    Records are stored as JSON text so serialization failures surface the
    same way they would on disk.
    """

    def __init__(self, indent: int | None = 2):
        self._indent = indent
        self.snapshots: dict[str, str] = {}
        self.archives: dict[str, str] = {}

    def snapshot(self, record: SessionRecord) -> None:
        try:
            self.snapshots[record.session_key] = dumps_record(record, indent=self._indent)
        except (TypeError, ValueError) as exc:
            raise SnapshotWriteError(f"cannot serialize session {record.session_key!r}: {exc}") from exc

    def archive(self, record: SessionRecord) -> str:
        try:
            payload = dumps_record(record, indent=self._indent)
        except (TypeError, ValueError) as exc:
            raise ArchiveWriteError(f"cannot serialize session {record.session_key!r}: {exc}") from exc
        ended_at = record.ended_at or record.started_at
        base = f"{record.session_key}-{int(ended_at.timestamp() * 1000)}"
        name = base
        suffix = 1
        while name in self.archives:
            name = f"{base}-{suffix}"
            suffix += 1
        self.archives[name] = payload
        return name

    def load_snapshot(self, session_key: str) -> SessionRecord | None:
        text = self.snapshots.get(session_key)
        if text is None:
            return None
        try:
            record = loads_record(text)
        except MalformedEventError as exc:
            raise PersistenceError(f"snapshot for {session_key!r} is unreadable: {exc}") from exc
        if record.session_key != session_key:
            raise PersistenceError(f"snapshot under {session_key!r} belongs to session {record.session_key!r}")
        return record

    def discard_snapshot(self, session_key: str) -> None:
        self.snapshots.pop(session_key, None)

    def find_archive(self, record: SessionRecord) -> str | None:
        for name, text in self.archives.items():
            archived = loads_record(text)
            if archived.session_key == record.session_key and archived.started_at == record.started_at:
                return name
        return None

    def archives_for(self, session_key: str) -> list[SessionRecord]:
        records = (loads_record(text) for text in self.archives.values())
        return [record for record in records if record.session_key == session_key]
