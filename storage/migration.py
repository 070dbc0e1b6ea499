"""One-shot transfer of guest data to an authenticated owner"""

import logging
from typing import Any, Iterable, Optional

from core.enums import EntityKind
from core.exceptions import MigrationError, StorageError
from core.interfaces import StorageBackend
from core.models import MigrationReport, Owner

logger = logging.getLogger(__name__)


def is_empty_snapshot(snapshot: Any) -> bool:
    if snapshot is None:
        return True
    if isinstance(snapshot, (list, tuple)):
        return len(snapshot) == 0
    if isinstance(snapshot, dict):
        return not snapshot.get("tables") if "tables" in snapshot else not snapshot
    return False


class MigrationStep:
    """Copy guest snapshots into the owner's remote store.

    A kind is copied only when the owner has no remote data for it yet, and
    the local copy is cleared afterwards. Running again is therefore a no-op.
    """

    def __init__(
        self,
        local: StorageBackend,
        remote: StorageBackend,
        kinds: Optional[Iterable[EntityKind]] = None,
    ):
        self.local = local
        self.remote = remote
        self.kinds = list(kinds) if kinds is not None else list(EntityKind)

    async def run(self, guest: Owner, owner: Owner) -> MigrationReport:
        """
        Migrate every entity kind from ``guest`` to ``owner``

        Args:
            guest: Guest identity holding local data
            owner: Authenticated identity receiving the data

        Returns:
            Report of migrated and skipped kinds

        Raises:
            MigrationError: If the target is not authenticated or a copy fails
        """
        if owner.is_guest:
            raise MigrationError("Migration target must be an authenticated owner")

        report = MigrationReport(guest_key=guest.key, owner_key=owner.key)
        logger.info("Starting guest data migration %s -> %s", guest.key, owner.key)

        for kind in self.kinds:
            try:
                if await self.remote.exists(kind, owner):
                    logger.info("Owner already has %s data, skipping", kind.value)
                    report.skipped_existing.append(kind)
                    continue

                snapshot = await self.local.load(kind, guest)
                if is_empty_snapshot(snapshot):
                    report.skipped_empty.append(kind)
                    continue

                await self.remote.save(kind, owner, snapshot)
                await self.local.clear(kind, guest)
            except StorageError as e:
                raise MigrationError(f"Failed to migrate {kind.value}: {e}", kind=kind.value) from e

            logger.info("Migrated %s for %s", kind.value, owner.key)
            report.migrated.append(kind)

        return report
