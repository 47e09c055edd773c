from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class SessionSnapshot(TimestampMixin, Base):
    __tablename__ = "wwl_session_snapshots"

    session_key: Mapped[str] = mapped_column(String(256), primary_key=True)
    record_json: Mapped[str] = mapped_column(Text, nullable=False)
    rounds_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    days_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SessionArchive(TimestampMixin, Base):
    __tablename__ = "wwl_session_archives"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    archive_name: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    session_key: Mapped[str] = mapped_column(String(256), nullable=False)

    winner: Mapped[str | None] = mapped_column(String(128), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    record_json: Mapped[str] = mapped_column(Text, nullable=False)


Index("ix_wwl_archive_session_ended", SessionArchive.session_key, SessionArchive.ended_at.desc())
