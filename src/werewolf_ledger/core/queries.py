from __future__ import annotations

from .errors import MalformedEventError
from .normalize import coerce_round_number
from .store import SessionStore
from .types import PhaseActions, SessionRecord


class LedgerQueries:
    """Read-only views over active sessions. Archived sessions are not visible here."""

    def __init__(self, store: SessionStore):
        self._store = store

    def get_round_actions(self, session_key: str, round_number: int) -> PhaseActions:
        record = self._store.get(session_key)
        if record is None:
            return {}
        try:
            round_number = coerce_round_number(round_number)
        except MalformedEventError:
            return {}
        finalized = record.find_round(round_number)
        if finalized is not None:
            return {phase: dict(actors) for phase, actors in finalized.actions.items()}
        return record.pending_actions.for_round(round_number)

    def get_history(self, session_key: str) -> SessionRecord | None:
        return self._store.get(session_key)
