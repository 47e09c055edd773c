from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from .errors import MalformedEventError
from .types import (
    NO_VOTE,
    UNKNOWN_CAUSE,
    UNKNOWN_NAME,
    DeathInput,
    ExecutionOutcome,
    Participant,
)

_MAX_STEM_CHARS = 128


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_session_key(value: Any) -> str:
    key = str(value if value is not None else "").strip()
    if not key:
        raise MalformedEventError("session key must be a non-empty string")
    return key


def session_key_filename(value: str) -> str:
    """Filesystem-safe stem for a session key.

    Keys that are already safe (channel ids) pass through untouched; any key
    that had to be rewritten or shortened gets a digest of the raw key so two
    distinct keys never share a stem.
    """
    raw = value.strip()
    stem = re.sub(r"[^A-Za-z0-9_.-]", "_", raw).lstrip(".")
    if stem and stem == raw and len(stem) <= _MAX_STEM_CHARS:
        return stem
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:10]
    return f"{stem[:_MAX_STEM_CHARS] or 'session'}~{digest}"


def dump_json(data: dict[str, Any], indent: int | None = 2) -> str:
    return json.dumps(data, ensure_ascii=False, sort_keys=True, indent=indent)


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def coerce_round_number(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedEventError("round number must be an integer, got bool")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(f"round number must be an integer, got {value!r}") from exc


def _entries(raw: Any, what: str) -> list[Any]:
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise MalformedEventError(f"{what} must be a collection, got {type(raw).__name__}")
    return list(raw)


def coerce_participant(raw: Any, participant_id: str | None = None) -> Participant:
    if isinstance(raw, Participant):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"participant entry must be a mapping, got {type(raw).__name__}")

    pid = _optional_str(_pick(raw, "id", "player_id", "playerId", default=participant_id))
    if not pid:
        raise MalformedEventError("participant entry is missing an id")
    return Participant(
        id=pid,
        name=_optional_str(_pick(raw, "name", "display_name")) or UNKNOWN_NAME,
        role=_optional_str(raw.get("role")),
        automated=bool(_pick(raw, "automated", "is_ai", "isAI", default=False)),
        alive=bool(_pick(raw, "alive", "is_alive", "isAlive", default=True)),
    )


def coerce_participants(raw: Any) -> tuple[dict[str, Participant], list[str]]:
    """Return (participants by id, rejection reasons).

    Accepts an id-keyed mapping or any iterable of participants. Entries that
    cannot be coerced are reported rather than raised; a value that is not a
    collection at all raises :class:`MalformedEventError`.
    """
    participants: dict[str, Participant] = {}
    rejected: list[str] = []
    if raw is None:
        return participants, rejected

    if isinstance(raw, Mapping):
        items: Iterable[tuple[str | None, Any]] = ((str(k), v) for k, v in raw.items())
    else:
        items = ((None, v) for v in _entries(raw, "participants"))

    for participant_id, value in items:
        try:
            participant = coerce_participant(value, participant_id)
        except MalformedEventError as exc:
            rejected.append(str(exc))
            continue
        participants[participant.id] = participant
    return participants, rejected


def coerce_deaths(raw: Any) -> tuple[list[DeathInput], list[str]]:
    deaths: list[DeathInput] = []
    rejected: list[str] = []
    if raw is None:
        return deaths, rejected
    for value in _entries(raw, "deaths"):
        try:
            deaths.append(coerce_death(value))
        except MalformedEventError as exc:
            rejected.append(str(exc))
    return deaths, rejected


def coerce_death(raw: Any) -> DeathInput:
    if isinstance(raw, DeathInput):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"death entry must be a mapping, got {type(raw).__name__}")

    victim_id = _optional_str(_pick(raw, "victim_id", "victim", "player_id", "playerId", "player"))
    if not victim_id:
        raise MalformedEventError("death entry is missing a victim id")
    return DeathInput(
        victim_id=victim_id,
        cause=_optional_str(_pick(raw, "cause", "killer")) or UNKNOWN_CAUSE,
        message=str(_pick(raw, "message", default="")),
    )


def coerce_execution(raw: Any) -> ExecutionOutcome | None:
    if raw is None or isinstance(raw, ExecutionOutcome):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"execution outcome must be a mapping, got {type(raw).__name__}")

    executed_raw = raw.get("executed")
    executed = coerce_participant(executed_raw) if executed_raw else None
    return ExecutionOutcome(
        executed=executed,
        vote_count=_optional_int(_pick(raw, "vote_count", "voteCount")),
        tie=bool(raw.get("tie", False)),
    )


def cast_votes(votes: Mapping[Any, Any] | None) -> list[tuple[str, str]]:
    """Voter/target pairs with abstentions removed, in the order supplied."""
    if not votes:
        return []
    if not isinstance(votes, Mapping):
        raise MalformedEventError(f"votes must map voter to target, got {type(votes).__name__}")
    out: list[tuple[str, str]] = []
    for voter_id, target_id in votes.items():
        voter = _optional_str(voter_id)
        target = _optional_str(target_id)
        if not voter or not target or target == NO_VOTE:
            continue
        out.append((voter, target))
    return out
