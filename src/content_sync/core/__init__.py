"""Store adapters and async helpers shared by the CLI and the sync engine."""

from .async_utils import run_sync
from .postgrest import PostgrestStore
from .store import ContentStore, InMemoryStore

__all__ = ["ContentStore", "InMemoryStore", "PostgrestStore", "run_sync"]
