from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterator

from .normalize import coerce_participants, normalize_session_key, utc_now
from .types import SessionRecord


class SessionStore:
    """Active session records keyed by session key.

    One instance is owned by the host process. A key lives here from
    ``initialize`` until it is removed after a successful archive.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self._records: dict[str, SessionRecord] = {}
        self._clock = clock or utc_now
        self._logger = logger or logging.getLogger(__name__)

    def initialize(self, session_key: str, participants: Any = None) -> SessionRecord:
        key = normalize_session_key(session_key)
        existing = self._records.get(key)
        if existing is not None:
            self._logger.debug("Session %s already active; initialize ignored", key)
            return existing

        roster, rejected = coerce_participants(participants)
        for reason in rejected:
            self._logger.warning("Session %s: skipped participant at init: %s", key, reason)

        record = SessionRecord(
            session_key=key,
            started_at=self._clock(),
            participant_count=len(roster),
            automated_participant_count=sum(1 for p in roster.values() if p.automated),
            participants=roster,
        )
        self._records[key] = record
        self._logger.info(
            "Session %s initialized with %d participants (%d automated)",
            key,
            record.participant_count,
            record.automated_participant_count,
        )
        return record

    def restore(self, record: SessionRecord) -> bool:
        if record.session_key in self._records:
            return False
        self._records[record.session_key] = record
        return True

    def get(self, session_key: str) -> SessionRecord | None:
        return self._records.get(str(session_key).strip()) if session_key is not None else None

    def remove(self, session_key: str) -> SessionRecord | None:
        return self._records.pop(str(session_key).strip(), None)

    def keys(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[SessionRecord]:
        return list(self._records.values())

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))
