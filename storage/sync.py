"""Dual-mode data access: local for guests, remote for authenticated owners"""

import logging
from typing import Any, Callable, List, Optional

from core.enums import EntityKind, OwnerKind
from core.exceptions import StorageError
from core.interfaces import StorageBackend
from core.models import MigrationReport, Owner
from .identity import IdentityResolver
from .migration import MigrationStep

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[EntityKind, Any], None]


class DataSync:
    """Load and save snapshots through the backend matching the session owner.

    Saves overwrite wholesale; snapshots pushed by the remote side replace
    local state (last writer wins).
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        local: StorageBackend,
        remote: Optional[StorageBackend] = None,
    ):
        self.resolver = resolver
        self.local = local
        self.remote = remote
        self.migration_report: Optional[MigrationReport] = None
        self._listeners: List[SnapshotListener] = []

    @property
    def owner(self) -> Owner:
        return self.resolver.owner

    @property
    def backend(self) -> StorageBackend:
        if not self.owner.is_guest and self.remote is not None:
            return self.remote
        return self.local

    async def start(self, access_token: Optional[str] = None, migrate: bool = True) -> Owner:
        """Resolve the session owner, migrating guest data on first sign-in"""
        owner = await self.resolver.resolve(access_token)
        if migrate and not owner.is_guest:
            await self.migrate()
        return owner

    async def migrate(self) -> Optional[MigrationReport]:
        """Absorb any pre-existing guest data into the authenticated owner"""
        owner = self.owner
        guest_id = self.resolver.existing_guest_id()
        if owner.is_guest or self.remote is None or not guest_id:
            return None
        guest = Owner(key=guest_id, kind=OwnerKind.GUEST)
        self.migration_report = await MigrationStep(self.local, self.remote).run(guest, owner)
        return self.migration_report

    async def load(self, kind: EntityKind, default: Any = None) -> Any:
        """Stored snapshot, or ``default`` when absent or unreadable"""
        try:
            snapshot = await self.backend.load(kind, self.owner)
        except StorageError as e:
            logger.error("Load of %s via %s failed: %s", kind.value, self.backend.name, e)
            snapshot = None
        if snapshot is None:
            return default
        return snapshot

    async def save(self, kind: EntityKind, snapshot: Any) -> None:
        """Persist a snapshot.

        Raises:
            StorageError: If the backend could not store it
        """
        await self.backend.save(kind, self.owner, snapshot)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register for remote snapshot deliveries; returns an unsubscribe"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_remote_snapshot(self, kind: EntityKind, snapshot: Any) -> None:
        """Accept a full replacement snapshot pushed by the remote side"""
        for listener in list(self._listeners):
            listener(kind, snapshot)
