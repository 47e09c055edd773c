from __future__ import annotations


class LedgerError(Exception):
    pass


class MalformedEventError(LedgerError, ValueError):
    """A single recorded entry is missing a required field."""


class PersistenceError(LedgerError):
    """A durable write or read could not complete.

    The recorder catches these and logs them; they never reach the game engine.
    """


class SnapshotWriteError(PersistenceError):
    pass


class ArchiveWriteError(PersistenceError):
    pass
