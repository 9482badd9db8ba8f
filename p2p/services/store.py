"""
Entity store interface.

The workflow engine talks to persistence only through this module: records
cross the boundary as plain wire dicts (see ``mappers``) and filters are
equality predicates on wire fields, never backend query syntax.

Every ``update`` bumps the record's ``version`` by exactly one. Passing
``expected_version`` turns the write into a compare-and-set that raises
``ConflictError`` when the stored version differs.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncContextManager, Optional

from p2p.config import Settings


class EntityType(str, Enum):
    REQUISITION = "purchase_requisitions"
    PURCHASE_ORDER = "purchase_orders"
    GOODS_RECEIPT = "goods_receipts"
    VENDOR = "vendors"
    COST_CENTER_APPROVER = "cost_center_approvers"
    COST_CENTER = "cost_centers"


class StoreTransaction(ABC):
    @abstractmethod
    async def get(
        self, entity_type: EntityType, entity_id: str, *, for_update: bool = False
    ) -> Optional[dict]:
        """Return the record or None."""

    @abstractmethod
    async def list(
        self,
        entity_type: EntityType,
        filters: Optional[dict] = None,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Records matching every ``field == value`` pair, oldest first, then windowed."""

    @abstractmethod
    async def count(self, entity_type: EntityType, filters: Optional[dict] = None) -> int:
        ...

    @abstractmethod
    async def create(self, entity_type: EntityType, record: dict) -> dict:
        ...

    @abstractmethod
    async def update(
        self,
        entity_type: EntityType,
        entity_id: str,
        changes: dict,
        expected_version: Optional[int] = None,
    ) -> dict:
        ...

    @abstractmethod
    async def delete(self, entity_type: EntityType, entity_id: str) -> None:
        ...


class EntityStore(ABC):
    @abstractmethod
    def transaction(self) -> AsyncContextManager[StoreTransaction]:
        """Commit on clean exit, discard every write on exception."""

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        return None


def build_store(settings: Settings) -> EntityStore:
    if settings.STORE_BACKEND == "sql":
        from p2p.services.sql_store import SqlEntityStore

        return SqlEntityStore.from_settings(settings)

    from p2p.services.local_store import LocalEntityStore

    return LocalEntityStore(path=settings.LOCAL_STORE_PATH)
