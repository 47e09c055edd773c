from .config import LedgerConfig, build_persister
from .core.errors import (
    ArchiveWriteError,
    LedgerError,
    MalformedEventError,
    PersistenceError,
    SnapshotWriteError,
)
from .core.queries import LedgerQueries
from .core.recorder import EventRecorder
from .core.store import SessionStore
from .core.types import (
    DAY,
    NIGHT,
    NO_VOTE,
    CompleteSessionResult,
    DeathInput,
    ExecutionOutcome,
    Participant,
    SessionRecord,
)
from .ledger import GameLedger
from .persistence.files import JsonFilePersister
from .persistence.memory import InMemoryPersister

__all__ = [
    "GameLedger",
    "LedgerConfig",
    "build_persister",
    "SessionStore",
    "EventRecorder",
    "LedgerQueries",
    "JsonFilePersister",
    "InMemoryPersister",
    "LedgerError",
    "MalformedEventError",
    "PersistenceError",
    "SnapshotWriteError",
    "ArchiveWriteError",
    "DAY",
    "NIGHT",
    "NO_VOTE",
    "CompleteSessionResult",
    "DeathInput",
    "ExecutionOutcome",
    "Participant",
    "SessionRecord",
]
