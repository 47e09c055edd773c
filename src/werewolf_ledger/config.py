"""Ledger configuration.

Settings resolve in priority order:

    1. Environment variables (``LedgerConfig.from_env``)
    2. Built-in defaults

Environment variable mapping:
    WEREWOLF_LEDGER_BACKEND  -> backend        (json | sqlalchemy | memory)
    WEREWOLF_LEDGER_DIR      -> history_dir
    WEREWOLF_LEDGER_DB_URL   -> database_url
    WEREWOLF_LEDGER_INDENT   -> json_indent    (empty or "none" for compact output)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

from .core.ports import PersisterPort
from .persistence.files import JsonFilePersister
from .persistence.memory import InMemoryPersister

logger = logging.getLogger(__name__)

Backend = Literal["json", "sqlalchemy", "memory"]
BACKENDS: tuple[str, ...] = ("json", "sqlalchemy", "memory")


@dataclass(frozen=True)
class LedgerConfig:
    backend: Backend = "json"
    history_dir: Path = Path("game_history")
    database_url: str = "sqlite+pysqlite:///game_history/ledger.db"
    json_indent: int | None = 2

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LedgerConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        backend = env.get("WEREWOLF_LEDGER_BACKEND", defaults.backend).strip().lower()
        if backend not in BACKENDS:
            logger.warning("Unknown ledger backend %r, falling back to %r", backend, defaults.backend)
            backend = defaults.backend

        indent: int | None = defaults.json_indent
        raw_indent = env.get("WEREWOLF_LEDGER_INDENT")
        if raw_indent is not None:
            raw_indent = raw_indent.strip().lower()
            if raw_indent in ("", "none"):
                indent = None
            else:
                try:
                    indent = max(0, int(raw_indent))
                except ValueError:
                    logger.warning("Invalid WEREWOLF_LEDGER_INDENT %r ignored", raw_indent)

        return cls(
            backend=backend,  # type: ignore[arg-type]
            history_dir=Path(env.get("WEREWOLF_LEDGER_DIR", str(defaults.history_dir))),
            database_url=env.get("WEREWOLF_LEDGER_DB_URL", defaults.database_url),
            json_indent=indent,
        )


def build_persister(config: LedgerConfig) -> PersisterPort:
    if config.backend == "memory":
        return InMemoryPersister(indent=config.json_indent)
    if config.backend == "sqlalchemy":
        from .persistence.sqlalchemy import (
            SQLAlchemyPersister,
            SQLAlchemyUnitOfWork,
            build_engine,
            build_session_factory,
            create_schema,
        )

        engine = build_engine(config.database_url)
        create_schema(engine)
        session_factory = build_session_factory(engine)
        return SQLAlchemyPersister(
            lambda: SQLAlchemyUnitOfWork(session_factory),
            indent=config.json_indent,
        )
    return JsonFilePersister(config.history_dir, indent=config.json_indent)
