"""Storage backends for traffic samples and signal timings."""

from .base import TrafficStore
from .memory import InMemoryTrafficStore
from .sqlite import SQLiteTrafficStore
from .supabase import SupabaseTrafficStore

__all__ = [
    "InMemoryTrafficStore",
    "SQLiteTrafficStore",
    "SupabaseTrafficStore",
    "TrafficStore",
    "open_store",
]


def open_store(config) -> TrafficStore:
    """Instantiate the backend selected by a :class:`~signal_optimizer.config.StorageConfig`."""

    if config.backend == "sqlite":
        return SQLiteTrafficStore(config.db_path)
    if config.backend == "supabase":
        return SupabaseTrafficStore(
            config.supabase_url,
            config.supabase_key,
            timeout=config.timeout,
        )
    return InMemoryTrafficStore()
