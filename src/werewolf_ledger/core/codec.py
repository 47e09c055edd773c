"""Plain-dict codec for :class:`SessionRecord`.

Snapshots and archives share one layout. Datetimes are ISO-8601 strings and
round numbers become string keys inside ``pending_actions`` because JSON
object keys are strings.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from .errors import MalformedEventError
from .normalize import dump_json
from .types import (
    ActionRecord,
    DayRecord,
    DeathEvent,
    ExecutionSummary,
    FinalParticipant,
    Participant,
    PendingActions,
    PhaseActions,
    RoundRecord,
    SessionRecord,
    VoteEvent,
)

SCHEMA_VERSION = 1


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _action_to_dict(action: ActionRecord) -> dict[str, Any]:
    return {
        "actor_id": action.actor_id,
        "action_type": action.action_type,
        "target_id": action.target_id,
        "timestamp": _iso(action.timestamp),
    }


def _phase_actions_to_dict(actions: PhaseActions) -> dict[str, Any]:
    return {
        phase: {actor_id: _action_to_dict(action) for actor_id, action in actors.items()}
        for phase, actors in actions.items()
    }


def _death_to_dict(death: DeathEvent) -> dict[str, Any]:
    return {
        "round_number": death.round_number,
        "phase": death.phase,
        "victim_id": death.victim_id,
        "victim_name": death.victim_name,
        "victim_role": death.victim_role,
        "cause": death.cause,
        "message": death.message,
        "timestamp": _iso(death.timestamp),
        "vote_count": death.vote_count,
    }


def _vote_to_dict(vote: VoteEvent) -> dict[str, Any]:
    return {
        "round_number": vote.round_number,
        "voter_id": vote.voter_id,
        "voter_name": vote.voter_name,
        "target_id": vote.target_id,
        "target_name": vote.target_name,
        "timestamp": _iso(vote.timestamp),
    }


def _execution_to_dict(execution: ExecutionSummary | None) -> dict[str, Any] | None:
    if execution is None:
        return None
    return {
        "executed_id": execution.executed_id,
        "executed_name": execution.executed_name,
        "executed_role": execution.executed_role,
        "vote_count": execution.vote_count,
        "tie": execution.tie,
    }


def record_to_dict(record: SessionRecord) -> dict[str, Any]:
    pending = record.pending_actions
    return {
        "schema_version": SCHEMA_VERSION,
        "session_key": record.session_key,
        "started_at": _iso(record.started_at),
        "ended_at": _iso(record.ended_at),
        "duration_ms": record.duration_ms,
        "participant_count": record.participant_count,
        "automated_participant_count": record.automated_participant_count,
        "participants": {
            pid: {
                "id": p.id,
                "name": p.name,
                "role": p.role,
                "automated": p.automated,
                "alive": p.alive,
            }
            for pid, p in record.participants.items()
        },
        "rounds": [
            {
                "round_number": r.round_number,
                "timestamp": _iso(r.timestamp),
                "actions": _phase_actions_to_dict(r.actions),
                "deaths": [_death_to_dict(d) for d in r.deaths],
            }
            for r in record.rounds
        ],
        "days": [
            {
                "round_number": d.round_number,
                "timestamp": _iso(d.timestamp),
                "votes": [_vote_to_dict(v) for v in d.votes],
                "execution": _execution_to_dict(d.execution),
            }
            for d in record.days
        ],
        "vote_log": [_vote_to_dict(v) for v in record.vote_log],
        "death_log": [_death_to_dict(d) for d in record.death_log],
        "pending_actions": {
            str(n): _phase_actions_to_dict(pending.for_round(n)) for n in pending.round_numbers()
        },
        "winner": record.winner,
        "final_state": [
            {
                "id": p.id,
                "name": p.name,
                "role": p.role,
                "automated": p.automated,
                "survived": p.survived,
            }
            for p in record.final_state
        ],
    }


def _action_from_dict(data: dict[str, Any]) -> ActionRecord:
    return ActionRecord(
        actor_id=str(data["actor_id"]),
        action_type=str(data["action_type"]),
        target_id=data.get("target_id"),
        timestamp=_dt(data["timestamp"]),
    )


def _phase_actions_from_dict(data: dict[str, Any]) -> PhaseActions:
    return {
        phase: {str(actor_id): _action_from_dict(a) for actor_id, a in actors.items()}
        for phase, actors in (data or {}).items()
    }


def _death_from_dict(data: dict[str, Any]) -> DeathEvent:
    return DeathEvent(
        round_number=int(data["round_number"]),
        phase=str(data["phase"]),
        victim_id=str(data["victim_id"]),
        victim_name=str(data["victim_name"]),
        victim_role=str(data["victim_role"]),
        cause=str(data["cause"]),
        message=str(data.get("message") or ""),
        timestamp=_dt(data["timestamp"]),
        vote_count=data.get("vote_count"),
    )


def _vote_from_dict(data: dict[str, Any]) -> VoteEvent:
    return VoteEvent(
        round_number=int(data["round_number"]),
        voter_id=str(data["voter_id"]),
        voter_name=str(data["voter_name"]),
        target_id=str(data["target_id"]),
        target_name=str(data["target_name"]),
        timestamp=_dt(data["timestamp"]),
    )


def _execution_from_dict(data: dict[str, Any] | None) -> ExecutionSummary | None:
    if not data:
        return None
    return ExecutionSummary(
        executed_id=data.get("executed_id"),
        executed_name=data.get("executed_name"),
        executed_role=data.get("executed_role"),
        vote_count=data.get("vote_count"),
        tie=bool(data.get("tie", False)),
    )


def record_from_dict(data: dict[str, Any]) -> SessionRecord:
    try:
        return SessionRecord(
            session_key=str(data["session_key"]),
            started_at=_dt(data["started_at"]),
            ended_at=_dt(data.get("ended_at")),
            participant_count=int(data.get("participant_count", 0)),
            automated_participant_count=int(data.get("automated_participant_count", 0)),
            participants={
                str(pid): Participant(
                    id=str(p["id"]),
                    name=str(p.get("name") or ""),
                    role=p.get("role"),
                    automated=bool(p.get("automated", False)),
                    alive=bool(p.get("alive", True)),
                )
                for pid, p in (data.get("participants") or {}).items()
            },
            rounds=[
                RoundRecord(
                    round_number=int(r["round_number"]),
                    timestamp=_dt(r["timestamp"]),
                    actions=_phase_actions_from_dict(r.get("actions")),
                    deaths=tuple(_death_from_dict(d) for d in r.get("deaths", [])),
                )
                for r in data.get("rounds", [])
            ],
            days=[
                DayRecord(
                    round_number=int(d["round_number"]),
                    timestamp=_dt(d["timestamp"]),
                    votes=tuple(_vote_from_dict(v) for v in d.get("votes", [])),
                    execution=_execution_from_dict(d.get("execution")),
                )
                for d in data.get("days", [])
            ],
            vote_log=[_vote_from_dict(v) for v in data.get("vote_log", [])],
            death_log=[_death_from_dict(d) for d in data.get("death_log", [])],
            pending_actions=PendingActions(
                {
                    int(n): _phase_actions_from_dict(phases)
                    for n, phases in (data.get("pending_actions") or {}).items()
                }
            ),
            winner=data.get("winner"),
            final_state=[
                FinalParticipant(
                    id=str(p["id"]),
                    name=str(p.get("name") or ""),
                    role=p.get("role"),
                    automated=bool(p.get("automated", False)),
                    survived=bool(p.get("survived", False)),
                )
                for p in data.get("final_state", [])
            ],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedEventError(f"session record payload is malformed: {exc}") from exc


def dumps_record(record: SessionRecord, indent: int | None = 2) -> str:
    return dump_json(record_to_dict(record), indent=indent)


def loads_record(text: str) -> SessionRecord:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedEventError(f"session record is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedEventError("session record must be a JSON object")
    return record_from_dict(data)
