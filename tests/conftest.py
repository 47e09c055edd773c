from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from werewolf_ledger.core.recorder import EventRecorder
from werewolf_ledger.core.queries import LedgerQueries
from werewolf_ledger.core.store import SessionStore
from werewolf_ledger.persistence.memory import InMemoryPersister
from werewolf_ledger.persistence.sqlalchemy.db import build_engine, build_session_factory, create_schema
from werewolf_ledger.persistence.sqlalchemy.uow import SQLAlchemyUnitOfWork


class StepClock:
    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture()
def clock():
    return StepClock(datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc))


@pytest.fixture()
def persister():
    return InMemoryPersister()


@pytest.fixture()
def store(clock):
    return SessionStore(clock=clock)


@pytest.fixture()
def recorder(store, persister, clock):
    return EventRecorder(store, persister, clock=clock)


@pytest.fixture()
def queries(store):
    return LedgerQueries(store)


@pytest.fixture()
def five_players():
    return {
        "p1": {"name": "P1", "role": "werewolf"},
        "p2": {"name": "P2", "role": "seer"},
        "p3": {"name": "P3", "role": "villager"},
        "p4": {"name": "P4", "role": "bodyguard"},
        "p5": {"name": "Bot", "role": "villager", "isAI": True},
    }


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    return build_session_factory(engine)


@pytest.fixture()
def uow_factory(session_factory):
    def _factory():
        return SQLAlchemyUnitOfWork(session_factory)

    return _factory
