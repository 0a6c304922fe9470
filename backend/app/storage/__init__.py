"""Data storage layer."""

from app.storage.database import Database, get_database, init_database
from app.storage.vault_repo import VaultRepository
from app.storage import cache
from app.storage import vault_cache
from app.storage.vault_store import VaultStore

__all__ = [
    "Database",
    "get_database",
    "init_database",
    "VaultRepository",
    "VaultStore",
    "cache",
    "vault_cache",
]
