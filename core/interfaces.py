"""Abstract base classes for planner components"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .enums import EntityKind
from .models import Owner


class StorageBackend(ABC):
    """Load/save of opaque JSON snapshots keyed by (entity kind, owner)"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name"""
        pass

    @abstractmethod
    async def load(self, kind: EntityKind, owner: Owner) -> Optional[Any]:
        """Return the stored snapshot, or None when absent or unreadable"""
        pass

    @abstractmethod
    async def save(self, kind: EntityKind, owner: Owner, snapshot: Any) -> None:
        """Persist a snapshot, replacing what was stored.

        Raises:
            StorageError: If the snapshot could not be written
        """
        pass

    @abstractmethod
    async def exists(self, kind: EntityKind, owner: Owner) -> bool:
        """Whether any data is stored for this kind and owner"""
        pass

    @abstractmethod
    async def clear(self, kind: EntityKind, owner: Owner) -> None:
        """Remove stored data for this kind and owner"""
        pass
