from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Callable

from .config import LedgerConfig, build_persister
from .core.errors import LedgerError, MalformedEventError, PersistenceError
from .core.normalize import normalize_session_key
from .core.ports import PersisterPort
from .core.queries import LedgerQueries
from .core.recorder import EventRecorder
from .core.store import SessionStore
from .core.types import (
    ActionRecord,
    CompleteSessionResult,
    DayRecord,
    PhaseActions,
    RoundRecord,
    SessionRecord,
)


class GameLedger:
    """Host-facing facade over the session store, recorder and queries.

    One instance per process. The game engine calls the lifecycle methods as
    play proceeds; ``close`` flushes snapshots of every still-active session.
    """

    def __init__(
        self,
        persister: PersisterPort,
        store: SessionStore | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._persister = persister
        self._store = store or SessionStore(clock=clock, logger=self._logger)
        self._recorder = EventRecorder(self._store, persister, clock=clock, logger=self._logger)
        self._queries = LedgerQueries(self._store)
        self._closed = False

    @classmethod
    def from_config(cls, config: LedgerConfig | None = None, **kwargs: Any) -> "GameLedger":
        return cls(build_persister(config or LedgerConfig.from_env()), **kwargs)

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def persister(self) -> PersisterPort:
        return self._persister

    def initialize(self, session_key: str, participants: Any = None) -> SessionRecord | None:
        try:
            return self._store.initialize(session_key, participants)
        except MalformedEventError as exc:
            self._logger.warning("initialize rejected: %s", exc)
            return None

    def record_action(
        self,
        session_key: str,
        round_number: int,
        phase: str,
        actor_id: str,
        action_type: str,
        target_id: str | None = None,
    ) -> ActionRecord | None:
        return self._recorder.record_action(session_key, round_number, phase, actor_id, action_type, target_id)

    def complete_round(
        self,
        session_key: str,
        round_number: int,
        deaths: Iterable[Any] | None = None,
        participants: Any = None,
    ) -> RoundRecord | None:
        return self._recorder.complete_round(session_key, round_number, deaths, participants)

    def complete_day_phase(
        self,
        session_key: str,
        round_number: int,
        votes: Mapping[Any, Any] | None = None,
        execution: Any = None,
        participants: Any = None,
    ) -> DayRecord | None:
        return self._recorder.complete_day_phase(session_key, round_number, votes, execution, participants)

    def complete_session(
        self,
        session_key: str,
        final_participants: Any,
        winner: str | None,
    ) -> CompleteSessionResult:
        return self._recorder.complete_session(session_key, final_participants, winner)

    def retry_archive(self, session_key: str) -> CompleteSessionResult:
        return self._recorder.retry_archive(session_key)

    def get_round_actions(self, session_key: str, round_number: int) -> PhaseActions:
        return self._queries.get_round_actions(session_key, round_number)

    def get_history(self, session_key: str) -> SessionRecord | None:
        return self._queries.get_history(session_key)

    def resume(self, session_key: str) -> SessionRecord | None:
        """Reload a session's working snapshot into the store after a restart.

        A snapshot of a finished game that already has an archive is left over
        from an interrupted cleanup; it is discarded rather than restored.
        """
        try:
            key = normalize_session_key(session_key)
        except MalformedEventError as exc:
            self._logger.warning("resume rejected: %s", exc)
            return None

        active = self._store.get(key)
        if active is not None:
            return active

        try:
            record = self._persister.load_snapshot(key)
        except PersistenceError as exc:
            self._logger.error("Session %s: snapshot could not be loaded: %s", key, exc)
            return None
        if record is None:
            return None
        archive_ref = self._archive_of(record) if record.completed else None
        if archive_ref is not None:
            self._logger.warning("Session %s: snapshot ignored, game already archived as %s", key, archive_ref)
            try:
                self._persister.discard_snapshot(key)
            except PersistenceError as exc:
                self._logger.warning("Session %s: stale snapshot not discarded: %s", key, exc)
            return None

        self._store.restore(record)
        self._logger.info(
            "Session %s resumed from snapshot (%d rounds, %d days)",
            key,
            len(record.rounds),
            len(record.days),
        )
        return record

    def _archive_of(self, record: SessionRecord) -> str | None:
        try:
            return self._persister.find_archive(record)
        except PersistenceError as exc:
            self._logger.warning("Session %s: archives could not be listed: %s", record.session_key, exc)
            return None

    def close(self) -> int:
        if self._closed:
            return 0
        self._closed = True
        written = self._recorder.snapshot_all()
        if len(self._store):
            self._logger.info("Ledger closed with %d active sessions, %d snapshots flushed", len(self._store), written)
        return written

    def __enter__(self) -> "GameLedger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.close()
        except LedgerError:  # pragma: no cover - defensive surface
            self._logger.exception("Ledger shutdown flush failed")
