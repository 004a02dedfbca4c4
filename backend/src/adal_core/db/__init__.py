"""Conversation store selection."""

from adal_core.config import settings
from adal_core.db.memory import MemoryDatabase
from adal_core.db.postgres import Database


def create_store() -> Database | MemoryDatabase:
    """Build the store configured by ``STORE_BACKEND``."""
    if settings.store_backend == "memory":
        return MemoryDatabase()
    return Database()


db = create_store()

__all__ = ["Database", "MemoryDatabase", "create_store", "db"]
