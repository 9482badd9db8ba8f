"""
In-process entity store with an optional JSON file behind it.

Used when no database is configured (``STORE_BACKEND=local``) and by the
test suite. A transaction works on a private copy of the data and swaps it in
on commit, so a failed operation leaves no partial state behind. Transactions
are serialized by a single lock.
"""

import asyncio
import copy
import json
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from p2p.errors import ConflictError, NotFoundError, StorageError
from p2p.services.store import EntityStore, EntityType, StoreTransaction

logger = structlog.get_logger()


def _key(entity_type) -> str:
    return entity_type.value if isinstance(entity_type, EntityType) else str(entity_type)


class LocalTransaction(StoreTransaction):
    def __init__(self, data: dict[str, dict[str, dict]]):
        self._data = data

    def _table(self, entity_type) -> dict[str, dict]:
        return self._data.setdefault(_key(entity_type), {})

    async def get(self, entity_type, entity_id, *, for_update=False):
        record = self._table(entity_type).get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    def _matching(self, entity_type, filters) -> list[dict]:
        filters = filters or {}
        return [
            r for r in self._table(entity_type).values()
            if all(r.get(k) == v for k, v in filters.items())
        ]

    async def list(self, entity_type, filters=None, *, offset=0, limit=None):
        matching = self._matching(entity_type, filters)
        end = None if limit is None else offset + limit
        return [copy.deepcopy(r) for r in matching[offset:end]]

    async def count(self, entity_type, filters=None):
        return len(self._matching(entity_type, filters))

    async def create(self, entity_type, record):
        table = self._table(entity_type)
        entity_id = record["id"]
        if entity_id in table:
            raise ConflictError(
                "Record already exists",
                entity_type=_key(entity_type),
                entity_id=entity_id,
                attempted="create",
            )
        stored = copy.deepcopy(record)
        stored.setdefault("version", 1)
        table[entity_id] = stored
        return copy.deepcopy(stored)

    async def update(self, entity_type, entity_id, changes, expected_version=None):
        table = self._table(entity_type)
        current = table.get(entity_id)
        if current is None:
            raise NotFoundError(
                "Record not found",
                entity_type=_key(entity_type),
                entity_id=entity_id,
                attempted="update",
            )
        version = current.get("version", 1)
        if expected_version is not None and version != expected_version:
            raise ConflictError(
                f"Stale write: expected version {expected_version}, found {version}",
                entity_type=_key(entity_type),
                entity_id=entity_id,
                attempted="update",
            )
        updated = {**current, **copy.deepcopy(changes)}
        updated["id"] = entity_id
        updated["version"] = version + 1
        table[entity_id] = updated
        return copy.deepcopy(updated)

    async def delete(self, entity_type, entity_id):
        if self._table(entity_type).pop(entity_id, None) is None:
            raise NotFoundError(
                "Record not found",
                entity_type=_key(entity_type),
                entity_id=entity_id,
                attempted="delete",
            )


class LocalEntityStore(EntityStore):
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = asyncio.Lock()
        self._data: dict[str, dict[str, dict]] = self._load()

    def _load(self) -> dict[str, dict[str, dict]]:
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read local store {self.path}: {e}") from e
        logger.info("local_store_loaded", path=self.path, tables=len(data))
        return data

    def _persist(self, data: dict) -> None:
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write local store {self.path}: {e}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LocalTransaction]:
        async with self._lock:
            working = copy.deepcopy(self._data)
            yield LocalTransaction(working)
            self._persist(working)
            self._data = working

    async def ping(self) -> bool:
        return True
