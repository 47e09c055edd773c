from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Callable

from .errors import MalformedEventError, PersistenceError
from .normalize import (
    cast_votes,
    coerce_deaths,
    coerce_execution,
    coerce_participants,
    coerce_round_number,
    utc_now,
)
from .ports import PersisterPort
from .store import SessionStore
from .types import (
    DAY,
    EXECUTION_MESSAGE,
    NIGHT,
    UNKNOWN_NAME,
    VILLAGE_CAUSE,
    ActionRecord,
    CompleteSessionResult,
    DayRecord,
    DeathEvent,
    ExecutionSummary,
    FinalParticipant,
    Participant,
    RoundRecord,
    SessionRecord,
    VoteEvent,
)


class EventRecorder:
    """Folds game events into the session records held by a :class:`SessionStore`.

    Every operation is a logged no-op for unknown sessions and every
    persistence failure is logged, so nothing here raises into the game loop.
    Snapshots are written after each completed night, day and game.
    """

    def __init__(
        self,
        store: SessionStore,
        persister: PersisterPort,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        self._store = store
        self._persister = persister
        self._clock = clock or utc_now
        self._logger = logger or logging.getLogger(__name__)

    def record_action(
        self,
        session_key: str,
        round_number: int,
        phase: str,
        actor_id: str,
        action_type: str,
        target_id: str | None = None,
    ) -> ActionRecord | None:
        record = self._active(session_key, "record_action")
        if record is None:
            return None
        round_number = self._round_number(session_key, round_number, "record_action")
        if round_number is None:
            return None
        if not actor_id:
            self._logger.warning("Session %s: action without actor ignored", session_key)
            return None

        action = ActionRecord(
            actor_id=str(actor_id),
            action_type=str(action_type),
            target_id=str(target_id) if target_id is not None else None,
            timestamp=self._clock(),
        )
        record.pending_actions.put(round_number, str(phase), action)
        return action

    def complete_round(
        self,
        session_key: str,
        round_number: int,
        deaths: Iterable[Any] | None = None,
        participants: Any = None,
    ) -> RoundRecord | None:
        record = self._active(session_key, "complete_round")
        if record is None:
            return None
        round_number = self._round_number(session_key, round_number, "complete_round")
        if round_number is None:
            return None
        self._merge_roster(record, participants)

        try:
            supplied, rejected = coerce_deaths(deaths)
        except MalformedEventError as exc:
            self._logger.warning("Session %s round %d: ignored deaths: %s", session_key, round_number, exc)
            supplied, rejected = [], []
        for reason in rejected:
            self._logger.warning("Session %s round %d: skipped death entry: %s", session_key, round_number, reason)

        now = self._clock()
        events: list[DeathEvent] = []
        for death in supplied:
            events.append(
                DeathEvent(
                    round_number=round_number,
                    phase=NIGHT,
                    victim_id=death.victim_id,
                    victim_name=record.display_name(death.victim_id),
                    victim_role=record.role_of(death.victim_id),
                    cause=death.cause,
                    message=death.message,
                    timestamp=now,
                )
            )

        round_record = RoundRecord(
            round_number=round_number,
            timestamp=now,
            actions=record.pending_actions.for_round(round_number),
            deaths=tuple(events),
        )
        record.rounds.append(round_record)
        record.death_log.extend(events)
        record.pending_actions.clear_round(round_number)

        self._logger.debug(
            "Session %s: round %d finalized with %d deaths",
            session_key,
            round_number,
            len(events),
        )
        self._snapshot(record)
        return round_record

    def complete_day_phase(
        self,
        session_key: str,
        round_number: int,
        votes: Mapping[Any, Any] | None = None,
        execution: Any = None,
        participants: Any = None,
    ) -> DayRecord | None:
        record = self._active(session_key, "complete_day_phase")
        if record is None:
            return None
        round_number = self._round_number(session_key, round_number, "complete_day_phase")
        if round_number is None:
            return None
        self._merge_roster(record, participants)

        try:
            cast = cast_votes(votes)
        except MalformedEventError as exc:
            self._logger.warning("Session %s round %d: ignored votes: %s", session_key, round_number, exc)
            cast = []

        now = self._clock()
        vote_events = tuple(
            VoteEvent(
                round_number=round_number,
                voter_id=voter_id,
                voter_name=record.display_name(voter_id),
                target_id=target_id,
                target_name=record.display_name(target_id),
                timestamp=now,
            )
            for voter_id, target_id in cast
        )

        try:
            outcome = coerce_execution(execution)
        except MalformedEventError as exc:
            self._logger.warning("Session %s round %d: ignored execution outcome: %s", session_key, round_number, exc)
            outcome = None

        summary = None
        executed = outcome.executed if outcome is not None else None
        executed_name = executed_role = None
        if executed is not None:
            executed_name = executed.name if executed.name != UNKNOWN_NAME else record.display_name(executed.id)
            executed_role = executed.role or record.role_of(executed.id)
        if outcome is not None:
            summary = ExecutionSummary(
                executed_id=executed.id if executed else None,
                executed_name=executed_name,
                executed_role=executed_role,
                vote_count=outcome.vote_count,
                tie=outcome.tie,
            )

        day_record = DayRecord(
            round_number=round_number,
            timestamp=now,
            votes=vote_events,
            execution=summary,
        )
        record.days.append(day_record)

        if executed is not None:
            record.death_log.append(
                DeathEvent(
                    round_number=round_number,
                    phase=DAY,
                    victim_id=executed.id,
                    victim_name=executed_name,
                    victim_role=executed_role,
                    cause=VILLAGE_CAUSE,
                    message=EXECUTION_MESSAGE,
                    timestamp=now,
                    vote_count=outcome.vote_count,
                )
            )

        record.vote_log.extend(vote_events)
        self._snapshot(record)
        return day_record

    def complete_session(
        self,
        session_key: str,
        final_participants: Any,
        winner: str | None,
    ) -> CompleteSessionResult:
        record = self._active(session_key, "complete_session")
        if record is None:
            return CompleteSessionResult(status="not_found", reason="session_not_found")

        final_roster = self._merge_roster(record, final_participants)
        record.winner = str(winner) if winner is not None else None
        record.ended_at = self._clock()
        record.final_state = [
            FinalParticipant(
                id=p.id,
                name=p.name,
                role=p.role,
                automated=p.automated,
                survived=p.alive,
            )
            for p in final_roster.values()
        ]

        self._snapshot(record)
        return self._archive(record)

    def retry_archive(self, session_key: str) -> CompleteSessionResult:
        record = self._active(session_key, "retry_archive")
        if record is None:
            return CompleteSessionResult(status="not_found", reason="session_not_found")
        if not record.completed:
            return CompleteSessionResult(status="error", reason="session_not_completed")
        return self._archive(record)

    def snapshot_all(self) -> int:
        written = 0
        for record in self._store.records():
            if self._snapshot(record):
                written += 1
        return written

    def _active(self, session_key: str, operation: str) -> SessionRecord | None:
        record = self._store.get(session_key)
        if record is None:
            self._logger.warning("%s: unknown session %r ignored", operation, session_key)
        return record

    def _round_number(self, session_key: str, value: Any, operation: str) -> int | None:
        try:
            return coerce_round_number(value)
        except MalformedEventError as exc:
            self._logger.warning("%s: session %s ignored: %s", operation, session_key, exc)
            return None

    def _merge_roster(self, record: SessionRecord, participants: Any) -> dict[str, Participant]:
        if participants is None:
            return {}
        try:
            roster, rejected = coerce_participants(participants)
        except MalformedEventError as exc:
            self._logger.warning("Session %s: ignored participant update: %s", record.session_key, exc)
            return {}
        for reason in rejected:
            self._logger.warning("Session %s: skipped participant: %s", record.session_key, reason)
        record.participants.update(roster)
        return roster

    def _snapshot(self, record: SessionRecord) -> bool:
        try:
            self._persister.snapshot(record)
        except PersistenceError as exc:
            self._logger.warning("Session %s: snapshot failed: %s", record.session_key, exc)
            return False
        except Exception:  # pragma: no cover - defensive surface
            self._logger.exception("Session %s: snapshot failed unexpectedly", record.session_key)
            return False
        return True

    def _archive(self, record: SessionRecord) -> CompleteSessionResult:
        key = record.session_key
        try:
            archive_ref = self._persister.archive(record)
        except PersistenceError as exc:
            self._logger.error("Session %s: archive failed, record kept active: %s", key, exc)
            return CompleteSessionResult(status="archive_failed", reason=str(exc))
        except Exception as exc:  # pragma: no cover - defensive surface
            self._logger.exception("Session %s: archive failed unexpectedly, record kept active", key)
            return CompleteSessionResult(status="archive_failed", reason=str(exc))

        self._store.remove(key)
        self._logger.info("Session %s archived to %s (winner=%s)", key, archive_ref, record.winner)
        try:
            self._persister.discard_snapshot(key)
        except PersistenceError as exc:
            self._logger.warning("Session %s: stale snapshot not discarded: %s", key, exc)
        except Exception:
            self._logger.exception("Session %s: stale snapshot not discarded", key)
        return CompleteSessionResult(status="archived", archive_ref=archive_ref)
