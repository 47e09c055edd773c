from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .models import SessionArchive, SessionSnapshot


class SnapshotRepo:
    def __init__(self, session: Session):
        self.session = session

    def get(self, session_key: str) -> SessionSnapshot | None:
        return self.session.get(SessionSnapshot, session_key)

    def upsert(
        self,
        session_key: str,
        record_json: str,
        rounds_completed: int,
        days_completed: int,
    ) -> SessionSnapshot:
        row = self.get(session_key)
        if row is None:
            row = SessionSnapshot(session_key=session_key, record_json=record_json)
            self.session.add(row)
        row.record_json = record_json
        row.rounds_completed = rounds_completed
        row.days_completed = days_completed
        self.session.flush()
        return row

    def delete(self, session_key: str) -> int:
        stmt = delete(SessionSnapshot).where(SessionSnapshot.session_key == session_key)
        return self.session.execute(stmt).rowcount or 0


class ArchiveRepo:
    def __init__(self, session: Session):
        self.session = session

    def name_taken(self, archive_name: str) -> bool:
        stmt = select(SessionArchive.id).where(SessionArchive.archive_name == archive_name).limit(1)
        return self.session.execute(stmt).first() is not None

    def add(
        self,
        archive_name: str,
        session_key: str,
        winner: str | None,
        started_at: datetime,
        ended_at: datetime | None,
        duration_ms: int | None,
        record_json: str,
    ) -> SessionArchive:
        row = SessionArchive(
            archive_name=archive_name,
            session_key=session_key,
            winner=winner,
            started_at=started_at,
            ended_at=ended_at,
            duration_ms=duration_ms,
            record_json=record_json,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def get_by_name(self, archive_name: str) -> SessionArchive | None:
        stmt = select(SessionArchive).where(SessionArchive.archive_name == archive_name).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_session(self, session_key: str) -> list[SessionArchive]:
        stmt = (
            select(SessionArchive)
            .where(SessionArchive.session_key == session_key)
            .order_by(SessionArchive.created_at.asc(), SessionArchive.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())
