from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from .repos import ArchiveRepo, SnapshotRepo


class SQLAlchemyUnitOfWork:
    """One session per ``with`` block; uncommitted work is rolled back on error."""

    snapshots: SnapshotRepo
    archives: ArchiveRepo

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.snapshots = SnapshotRepo(self.session)
        self.archives = ArchiveRepo(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.session is None:
            return
        try:
            if exc_type is not None:
                self.session.rollback()
        finally:
            self.session.close()
            self.session = None

    def commit(self) -> None:
        if self.session is None:
            raise RuntimeError("unit of work is not active")
        self.session.commit()

    def rollback(self) -> None:
        if self.session is None:
            raise RuntimeError("unit of work is not active")
        self.session.rollback()
