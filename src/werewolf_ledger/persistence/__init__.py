from .files import JsonFilePersister
from .memory import InMemoryPersister

__all__ = ["JsonFilePersister", "InMemoryPersister"]
