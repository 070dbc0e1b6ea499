"""Budget tables bound to the session's storage"""

import logging
from typing import Any, Optional

from core.enums import EntityKind, RecalcStrategy
from storage.sync import DataSync
from .tables import TableBook

logger = logging.getLogger(__name__)


class BudgetWorkspace:
    """Load, edit and persist the session's TableBook"""

    def __init__(self, sync: DataSync, strategy: Optional[RecalcStrategy] = None):
        self.sync = sync
        self.strategy = strategy
        self.book = TableBook(strategy=strategy)
        self._unsubscribe = sync.subscribe(self._on_remote_snapshot)

    async def load(self) -> TableBook:
        snapshot = await self.sync.load(EntityKind.BUDGET, default={"tables": []})
        self.book = TableBook.from_snapshot(snapshot, strategy=self.strategy)
        logger.debug("Loaded %d budget table(s) for %s", len(self.book.tables), self.sync.owner.key)
        return self.book

    async def save(self) -> None:
        """Persist the whole book (raises StorageError on failure)"""
        await self.sync.save(EntityKind.BUDGET, self.book.to_snapshot())

    def _on_remote_snapshot(self, kind: EntityKind, snapshot: Any) -> None:
        if kind != EntityKind.BUDGET:
            return
        self.book = TableBook.from_snapshot(snapshot, strategy=self.strategy)

    def close(self) -> None:
        self._unsubscribe()
