"""Persistence layer"""

from .local import LocalStore, LocalBackend, storage_key
from .remote import SupabaseRowStore, create_supabase_client
from .identity import IdentityResolver, generate_guest_id
from .migration import MigrationStep
from .sync import DataSync

__all__ = [
    "LocalStore",
    "LocalBackend",
    "storage_key",
    "SupabaseRowStore",
    "create_supabase_client",
    "IdentityResolver",
    "generate_guest_id",
    "MigrationStep",
    "DataSync",
]
