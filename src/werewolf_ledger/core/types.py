from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

NIGHT = "NIGHT"
DAY = "DAY"
NO_VOTE = "skip"
VILLAGE_CAUSE = "VILLAGE"
UNKNOWN_CAUSE = "UNKNOWN"
UNKNOWN_NAME = "Unknown"
EXECUTION_MESSAGE = "Executed by village vote"


@dataclass
class Participant:
    id: str
    name: str = UNKNOWN_NAME
    role: Optional[str] = None
    automated: bool = False
    alive: bool = True


@dataclass(frozen=True)
class ActionRecord:
    actor_id: str
    action_type: str
    target_id: Optional[str]
    timestamp: datetime


@dataclass(frozen=True)
class DeathInput:
    victim_id: str
    cause: str = UNKNOWN_CAUSE
    message: str = ""


@dataclass(frozen=True)
class DeathEvent:
    round_number: int
    phase: str
    victim_id: str
    victim_name: str
    victim_role: str
    cause: str
    message: str
    timestamp: datetime
    vote_count: Optional[int] = None


@dataclass(frozen=True)
class VoteEvent:
    round_number: int
    voter_id: str
    voter_name: str
    target_id: str
    target_name: str
    timestamp: datetime


@dataclass(frozen=True)
class ExecutionOutcome:
    executed: Optional[Participant] = None
    vote_count: Optional[int] = None
    tie: bool = False


@dataclass(frozen=True)
class ExecutionSummary:
    executed_id: Optional[str]
    executed_name: Optional[str]
    executed_role: Optional[str]
    vote_count: Optional[int] = None
    tie: bool = False


PhaseActions = dict[str, dict[str, ActionRecord]]


@dataclass(frozen=True)
class RoundRecord:
    round_number: int
    timestamp: datetime
    actions: PhaseActions
    deaths: tuple[DeathEvent, ...] = ()


@dataclass(frozen=True)
class DayRecord:
    round_number: int
    timestamp: datetime
    votes: tuple[VoteEvent, ...] = ()
    execution: Optional[ExecutionSummary] = None


@dataclass(frozen=True)
class FinalParticipant:
    id: str
    name: str
    role: Optional[str]
    automated: bool
    survived: bool


class PendingActions:
    """In-flight actions keyed round -> phase -> actor.

    ``put`` overwrites any earlier action by the same actor in the same
    (round, phase). Reads hand out copies so folded rounds cannot be altered
    through them.
    """

    def __init__(self, rounds: dict[int, PhaseActions] | None = None):
        self._rounds: dict[int, PhaseActions] = rounds or {}

    def put(self, round_number: int, phase: str, action: ActionRecord) -> None:
        phases = self._rounds.setdefault(round_number, {})
        phases.setdefault(phase, {})[action.actor_id] = action

    def for_round(self, round_number: int) -> PhaseActions:
        phases = self._rounds.get(round_number, {})
        return {phase: dict(actors) for phase, actors in phases.items()}

    def clear_round(self, round_number: int) -> None:
        self._rounds[round_number] = {}

    def round_numbers(self) -> list[int]:
        return sorted(self._rounds)

    def __contains__(self, round_number: object) -> bool:
        return round_number in self._rounds

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PendingActions):
            return NotImplemented
        return self._rounds == other._rounds

    def __repr__(self) -> str:
        return f"PendingActions({self._rounds!r})"


@dataclass
class SessionRecord:
    session_key: str
    started_at: datetime
    participant_count: int = 0
    automated_participant_count: int = 0
    participants: dict[str, Participant] = field(default_factory=dict)
    rounds: list[RoundRecord] = field(default_factory=list)
    days: list[DayRecord] = field(default_factory=list)
    vote_log: list[VoteEvent] = field(default_factory=list)
    death_log: list[DeathEvent] = field(default_factory=list)
    pending_actions: PendingActions = field(default_factory=PendingActions)
    ended_at: Optional[datetime] = None
    winner: Optional[str] = None
    final_state: list[FinalParticipant] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.ended_at is not None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return int((self.ended_at - self.started_at).total_seconds() * 1000)

    def find_round(self, round_number: int) -> Optional[RoundRecord]:
        for record in self.rounds:
            if record.round_number == round_number:
                return record
        return None

    def display_name(self, participant_id: str | None) -> str:
        participant = self.participants.get(participant_id) if participant_id else None
        return participant.name if participant is not None else UNKNOWN_NAME

    def role_of(self, participant_id: str | None) -> str:
        participant = self.participants.get(participant_id) if participant_id else None
        if participant is None or not participant.role:
            return UNKNOWN_NAME
        return participant.role


@dataclass
class CompleteSessionResult:
    status: str
    archive_ref: Optional[str] = None
    reason: Optional[str] = None
