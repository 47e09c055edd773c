from .codec import dumps_record, loads_record, record_from_dict, record_to_dict
from .errors import (
    ArchiveWriteError,
    LedgerError,
    MalformedEventError,
    PersistenceError,
    SnapshotWriteError,
)
from .ports import PersisterPort
from .queries import LedgerQueries
from .recorder import EventRecorder
from .store import SessionStore
from .types import (
    DAY,
    NIGHT,
    NO_VOTE,
    VILLAGE_CAUSE,
    ActionRecord,
    CompleteSessionResult,
    DayRecord,
    DeathEvent,
    DeathInput,
    ExecutionOutcome,
    ExecutionSummary,
    FinalParticipant,
    Participant,
    PendingActions,
    RoundRecord,
    SessionRecord,
    VoteEvent,
)

__all__ = [
    "EventRecorder",
    "LedgerQueries",
    "SessionStore",
    "PersisterPort",
    "dumps_record",
    "loads_record",
    "record_from_dict",
    "record_to_dict",
    "LedgerError",
    "MalformedEventError",
    "PersistenceError",
    "SnapshotWriteError",
    "ArchiveWriteError",
    "DAY",
    "NIGHT",
    "NO_VOTE",
    "VILLAGE_CAUSE",
    "ActionRecord",
    "CompleteSessionResult",
    "DayRecord",
    "DeathEvent",
    "DeathInput",
    "ExecutionOutcome",
    "ExecutionSummary",
    "FinalParticipant",
    "Participant",
    "PendingActions",
    "RoundRecord",
    "SessionRecord",
    "VoteEvent",
]
