"""Local (guest) persistence: a JSON key-value file"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from core.enums import EntityKind
from core.exceptions import StorageError
from core.interfaces import StorageBackend
from core.models import Owner
from config import settings

logger = logging.getLogger(__name__)


class LocalStore:
    """String key-value store persisted as a single JSON object on disk.

    Values are stored as strings, mirroring browser local storage, so
    snapshots are JSON-encoded twice.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else settings.get_local_store_path()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Local store %s is unreadable, treating as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Local store %s is not a JSON object, treating as empty", self.path)
            return {}
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def storage_key(kind: EntityKind, owner: Owner) -> str:
    """``{scope}_{ownerId}_{entityKind}``"""
    return f"{owner.storage_prefix}_{kind.value}"


class LocalBackend(StorageBackend):
    """StorageBackend over a LocalStore"""

    def __init__(self, store: LocalStore):
        self.store = store

    @property
    def name(self) -> str:
        return "local"

    async def load(self, kind: EntityKind, owner: Owner) -> Optional[Any]:
        key = storage_key(kind, owner)
        raw = self.store.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Corrupt local snapshot under %s: %s", key, e)
            return None

    async def save(self, kind: EntityKind, owner: Owner, snapshot: Any) -> None:
        key = storage_key(kind, owner)
        try:
            self.store.set_item(key, json.dumps(snapshot))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save {key}: {e}", kind=kind.value, owner=owner.key) from e
        logger.debug("Saved %s", key)

    async def exists(self, kind: EntityKind, owner: Owner) -> bool:
        return self.store.get_item(storage_key(kind, owner)) is not None

    async def clear(self, kind: EntityKind, owner: Owner) -> None:
        try:
            self.store.remove_item(storage_key(kind, owner))
        except OSError as e:
            raise StorageError(f"Failed to clear {kind.value}: {e}", kind=kind.value, owner=owner.key) from e
