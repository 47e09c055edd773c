from .db import build_engine, build_session_factory, create_schema
from .persister import SQLAlchemyPersister
from .uow import SQLAlchemyUnitOfWork

__all__ = [
    "build_engine",
    "build_session_factory",
    "create_schema",
    "SQLAlchemyPersister",
    "SQLAlchemyUnitOfWork",
]
