from __future__ import annotations

import json
import logging

from werewolf_ledger.core.errors import ArchiveWriteError, SnapshotWriteError
from werewolf_ledger.core.recorder import EventRecorder
from werewolf_ledger.core.types import DAY, NIGHT, DeathInput, ExecutionOutcome, Participant
from werewolf_ledger.persistence.memory import InMemoryPersister


class FailingArchivePersister(InMemoryPersister):
    def __init__(self):
        super().__init__()
        self.fail_archive = True

    def archive(self, record):
        if self.fail_archive:
            raise ArchiveWriteError("disk full")
        return super().archive(record)


class FailingSnapshotPersister(InMemoryPersister):
    def snapshot(self, record):
        raise SnapshotWriteError("read-only filesystem")


def test_last_action_per_actor_and_phase_wins(store, recorder, queries, five_players):
    store.initialize("S1", five_players)
    recorder.record_action("S1", 1, "WEREWOLF", "p1", "kill", "p2")
    recorder.record_action("S1", 1, "WEREWOLF", "p1", "kill", "p3")
    recorder.record_action("S1", 1, "SEER", "p2", "inspect", "p1")

    round_record = recorder.complete_round("S1", 1, deaths=[])

    assert round_record.actions["WEREWOLF"]["p1"].target_id == "p3"
    assert set(round_record.actions["WEREWOLF"]) == {"p1"}
    assert round_record.actions["SEER"]["p2"].action_type == "inspect"
    assert queries.get_round_actions("S1", 1) == round_record.actions


def test_scenario_first_night_kill(store, recorder, persister, five_players):
    record = store.initialize("S1", five_players)
    assert record.participant_count == 5
    assert record.automated_participant_count == 1

    recorder.record_action("S1", 1, NIGHT, "p1", "kill", "p2")
    recorder.complete_round("S1", 1, deaths=[{"victim": "p2", "cause": "p1"}])

    assert len(record.rounds[0].deaths) == 1
    death = record.rounds[0].deaths[0]
    assert death.victim_id == "p2"
    assert death.victim_name == "P2"
    assert death.victim_role == "seer"
    assert death.cause == "p1"
    assert death.phase == NIGHT
    assert len(record.death_log) == 1
    assert record.pending_actions.for_round(1) == {}
    assert "S1" in persister.snapshots


def test_finalized_round_is_not_altered_by_late_actions(store, recorder, queries, five_players):
    store.initialize("S1", five_players)
    recorder.record_action("S1", 1, NIGHT, "p1", "kill", "p2")
    finalized = recorder.complete_round("S1", 1)

    recorder.record_action("S1", 1, NIGHT, "p1", "kill", "p4")

    assert finalized.actions[NIGHT]["p1"].target_id == "p2"
    assert queries.get_round_actions("S1", 1)[NIGHT]["p1"].target_id == "p2"


def test_day_phase_skips_abstentions_and_records_execution(store, recorder, five_players):
    record = store.initialize("S1", five_players)
    day = recorder.complete_day_phase(
        "S1",
        1,
        votes={"p1": "p3", "p4": "skip"},
        execution={"executed": {"id": "p3", "name": "P3", "role": "villager"}, "voteCount": 1},
    )

    assert len(record.vote_log) == 1
    vote = record.vote_log[0]
    assert (vote.voter_id, vote.target_id) == ("p1", "p3")
    assert (vote.voter_name, vote.target_name) == ("P1", "P3")

    assert len(record.death_log) == 1
    execution_death = record.death_log[0]
    assert execution_death.cause == "VILLAGE"
    assert execution_death.phase == DAY
    assert execution_death.vote_count == 1
    assert execution_death.victim_role == "villager"

    assert day.execution.executed_id == "p3"
    assert record.days == [day]


def test_tie_without_execution_adds_no_death(store, recorder, five_players):
    record = store.initialize("S1", five_players)
    day = recorder.complete_day_phase(
        "S1",
        2,
        votes={"p1": "p3", "p3": "p1"},
        execution=ExecutionOutcome(executed=None, vote_count=1, tie=True),
    )

    assert record.death_log == []
    assert len(record.vote_log) == 2
    assert day.execution.tie is True
    assert day.execution.executed_id is None


def test_death_log_counts_every_supplied_death(store, recorder, five_players):
    record = store.initialize("S1", five_players)
    recorder.complete_round("S1", 1, deaths=[{"playerId": "p2", "killer": "WEREWOLF"}])
    recorder.complete_day_phase("S1", 1, votes={}, execution={"executed": {"id": "p4"}, "voteCount": 3})
    recorder.complete_round(
        "S1",
        2,
        deaths=[DeathInput("p3", "WITCH", "poisoned"), DeathInput("p5", "WEREWOLF")],
    )

    assert len(record.death_log) == 4
    assert [d.victim_id for d in record.death_log] == ["p2", "p4", "p3", "p5"]
    # name/role fall back to the roster when the engine omits them
    assert record.death_log[1].victim_name == "P4"
    assert record.death_log[1].victim_role == "bodyguard"


def test_unknown_participants_get_placeholder_names(store, recorder):
    record = store.initialize("S1", {"p1": {"name": "P1"}})
    recorder.complete_round("S1", 1, deaths=[{"victim": "ghost", "cause": "WEREWOLF"}])
    recorder.complete_day_phase("S1", 1, votes={"p1": "ghost", "nobody": "p1"})

    assert record.death_log[0].victim_name == "Unknown"
    assert record.death_log[0].victim_role == "Unknown"
    assert record.vote_log[0].target_name == "Unknown"
    assert record.vote_log[1].voter_name == "Unknown"


def test_malformed_death_entry_is_skipped(store, recorder, caplog):
    record = store.initialize("S1", {"p1": {"name": "P1"}})
    with caplog.at_level(logging.WARNING):
        round_record = recorder.complete_round("S1", 1, deaths=[{"cause": "WEREWOLF"}, {"victim": "p1"}])

    assert [d.victim_id for d in round_record.deaths] == ["p1"]
    assert round_record.deaths[0].cause == "UNKNOWN"
    assert len(record.death_log) == 1
    assert "skipped death entry" in caplog.text


def test_participants_supplied_later_update_lookup(store, recorder):
    record = store.initialize("S1", [{"id": "p1", "name": "P1"}, {"id": "p2", "name": "P2"}])
    recorder.complete_round(
        "S1",
        1,
        deaths=[{"victim": "p2", "cause": "WEREWOLF"}],
        participants=[Participant("p2", "P2", role="witch", alive=False)],
    )
    assert record.death_log[0].victim_role == "witch"
    assert record.participants["p2"].alive is False


def test_unknown_session_operations_are_noops(recorder, persister, caplog):
    with caplog.at_level(logging.WARNING):
        assert recorder.record_action("missing", 1, NIGHT, "p1", "kill", "p2") is None
        assert recorder.complete_round("missing", 1, deaths=[{"victim": "p2"}]) is None
        assert recorder.complete_day_phase("missing", 1, votes={"p1": "p2"}) is None
        result = recorder.complete_session("missing", {}, "VILLAGERS")

    assert result.status == "not_found"
    assert persister.snapshots == {}
    assert persister.archives == {}
    assert "unknown session" in caplog.text


def test_complete_session_archives_and_removes(store, recorder, persister, queries, five_players):
    store.initialize("S1", five_players)
    recorder.complete_round("S1", 1, deaths=[{"victim": "p2", "cause": "p1"}])
    final = {pid: dict(p, isAlive=pid != "p2") for pid, p in five_players.items()}

    result = recorder.complete_session("S1", final, "VILLAGERS")

    assert result.status == "archived"
    assert queries.get_history("S1") is None
    assert "S1" not in persister.snapshots

    archived = json.loads(persister.archives[result.archive_ref])
    assert archived["winner"] == "VILLAGERS"
    assert archived["ended_at"] is not None
    assert archived["duration_ms"] > 0
    assert {p["id"] for p in archived["final_state"]} == set(five_players)
    survived = {p["id"]: p["survived"] for p in archived["final_state"]}
    assert survived["p2"] is False
    assert survived["p1"] is True


def test_archive_failure_keeps_session_active(store, clock, queries, five_players, caplog):
    persister = FailingArchivePersister()
    recorder = EventRecorder(store, persister, clock=clock)
    store.initialize("S1", five_players)

    with caplog.at_level(logging.ERROR):
        result = recorder.complete_session("S1", five_players, "WEREWOLVES")

    assert result.status == "archive_failed"
    assert "disk full" in result.reason
    history = queries.get_history("S1")
    assert history is not None
    assert history.winner == "WEREWOLVES"
    assert history.ended_at is not None
    assert "S1" in persister.snapshots
    assert "archive failed" in caplog.text

    persister.fail_archive = False
    retried = recorder.retry_archive("S1")
    assert retried.status == "archived"
    assert queries.get_history("S1") is None
    assert len(persister.archives) == 1


def test_retry_archive_requires_completed_session(store, recorder):
    store.initialize("S1", {})
    assert recorder.retry_archive("S1").status == "error"
    assert recorder.retry_archive("nope").status == "not_found"


def test_snapshot_failure_does_not_interrupt_play(store, clock, five_players, caplog):
    recorder = EventRecorder(store, FailingSnapshotPersister(), clock=clock)
    record = store.initialize("S1", five_players)

    with caplog.at_level(logging.WARNING):
        round_record = recorder.complete_round("S1", 1, deaths=[{"victim": "p2"}])
        result = recorder.complete_session("S1", five_players, "VILLAGERS")

    assert round_record is not None
    assert len(record.death_log) == 1
    assert result.status == "archived"
    assert "snapshot failed" in caplog.text


def test_sessions_are_isolated(store, recorder, five_players):
    a = store.initialize("A", five_players)
    b = store.initialize("B", five_players)
    recorder.record_action("A", 1, NIGHT, "p1", "kill", "p2")
    recorder.complete_round("A", 1, deaths=[{"victim": "p2"}])

    assert b.rounds == []
    assert b.death_log == []
    assert b.pending_actions.for_round(1) == {}
    assert len(a.death_log) == 1


def test_snapshot_all_flushes_every_active_session(store, recorder, persister):
    store.initialize("A", {})
    store.initialize("B", {})
    assert recorder.snapshot_all() == 2
    assert set(persister.snapshots) == {"A", "B"}


class DiscardCrashPersister(InMemoryPersister):
    def discard_snapshot(self, session_key):
        raise RuntimeError("lock held by another process")


def test_bad_round_numbers_are_logged_not_raised(store, recorder, persister, five_players, caplog):
    record = store.initialize("S1", five_players)
    with caplog.at_level(logging.WARNING):
        assert recorder.record_action("S1", "night-one", NIGHT, "p1", "kill", "p2") is None
        assert recorder.complete_round("S1", None, deaths=[{"victim": "p2"}]) is None
        assert recorder.complete_day_phase("S1", [2], votes={"p1": "p3"}) is None

    assert record.pending_actions.round_numbers() == []
    assert record.rounds == []
    assert record.days == []
    assert record.death_log == []
    assert persister.snapshots == {}
    assert "round number must be an integer" in caplog.text

    assert recorder.record_action("S1", "2", NIGHT, "p1", "kill", "p2").target_id == "p2"
    assert record.pending_actions.round_numbers() == [2]


def test_malformed_collections_are_logged_not_raised(store, recorder, five_players, caplog):
    record = store.initialize("S1", five_players)
    with caplog.at_level(logging.WARNING):
        round_record = recorder.complete_round("S1", 1, deaths=5, participants=5)
        day = recorder.complete_day_phase("S1", 1, votes=["p1"], participants="p1")
        result = recorder.complete_session("S1", 7, "VILLAGERS")

    assert round_record.deaths == ()
    assert day.votes == ()
    assert record.vote_log == []
    assert len(record.participants) == 5
    assert result.status == "archived"
    assert result.archive_ref is not None
    assert "ignored deaths" in caplog.text
    assert "ignored votes" in caplog.text
    assert "ignored participant update" in caplog.text


def test_discard_failure_after_archive_is_logged(store, clock, five_players, caplog):
    persister = DiscardCrashPersister()
    recorder = EventRecorder(store, persister, clock=clock)
    store.initialize("S1", five_players)

    with caplog.at_level(logging.ERROR):
        result = recorder.complete_session("S1", five_players, "VILLAGERS")

    assert result.status == "archived"
    assert store.get("S1") is None
    assert len(persister.archives) == 1
    assert "stale snapshot not discarded" in caplog.text
