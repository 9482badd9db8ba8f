"""
SQLAlchemy-backed entity store.

One table per entity type (``p2p.models``). The store speaks Core statements
against those tables so that reads inside a transaction always see the
latest write; ORM identity-map caching would otherwise hide a version bump
made earlier in the same transaction.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Optional

from sqlalchemy import Date, DateTime, Numeric, Table, delete, func, insert, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
import structlog

from p2p.config import Settings
from p2p.database import create_engine_from_settings, create_session_factory
from p2p.errors import ConflictError, NotFoundError, StorageError
from p2p.models import (
    CostCenterApproverRow,
    CostCenterRow,
    GoodsReceiptRow,
    PurchaseOrderRow,
    PurchaseRequisitionRow,
    VendorRow,
)
from p2p.services.store import EntityStore, EntityType, StoreTransaction

logger = structlog.get_logger()

MODEL_BY_ENTITY = {
    EntityType.REQUISITION: PurchaseRequisitionRow,
    EntityType.PURCHASE_ORDER: PurchaseOrderRow,
    EntityType.GOODS_RECEIPT: GoodsReceiptRow,
    EntityType.VENDOR: VendorRow,
    EntityType.COST_CENTER_APPROVER: CostCenterApproverRow,
    EntityType.COST_CENTER: CostCenterRow,
}


def _to_column(column, value):
    """Wire value (JSON primitive) -> Python value for the column type."""
    if value is None:
        return None
    if isinstance(column.type, DateTime) and isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Date) and isinstance(value, str):
        return date.fromisoformat(value)
    if isinstance(column.type, Numeric) and not isinstance(value, Decimal):
        return Decimal(str(value))
    return value


def _from_column(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _values_for(table: Table, record: dict, *, skip: tuple = ()) -> dict:
    return {
        key: _to_column(table.c[key], value)
        for key, value in record.items()
        if key in table.c and key not in skip
    }


def _to_record(row) -> dict:
    return {key: _from_column(value) for key, value in row.items()}


class SqlTransaction(StoreTransaction):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _table(entity_type) -> Table:
        return MODEL_BY_ENTITY[EntityType(entity_type)].__table__

    async def get(self, entity_type, entity_id, *, for_update=False):
        table = self._table(entity_type)
        q = select(table).where(table.c.id == entity_id)
        if for_update:
            q = q.with_for_update()
        row = (await self.session.execute(q)).mappings().one_or_none()
        return _to_record(row) if row is not None else None

    @staticmethod
    def _filtered(q, table: Table, filters: Optional[dict]):
        for key, value in (filters or {}).items():
            q = q.where(table.c[key] == _to_column(table.c[key], value))
        return q

    async def list(self, entity_type, filters=None, *, offset=0, limit=None):
        model = MODEL_BY_ENTITY[EntityType(entity_type)]
        table = model.__table__
        q = self._filtered(select(table), table, filters).order_by(table.c[model.sort_column])
        if offset:
            q = q.offset(offset)
        if limit is not None:
            q = q.limit(limit)
        result = await self.session.execute(q)
        return [_to_record(row) for row in result.mappings().all()]

    async def count(self, entity_type, filters=None):
        table = self._table(entity_type)
        q = self._filtered(select(func.count()).select_from(table), table, filters)
        return (await self.session.execute(q)).scalar_one()

    async def create(self, entity_type, record):
        table = self._table(entity_type)
        values = _values_for(table, record)
        values.setdefault("version", 1)
        try:
            result = await self.session.execute(
                insert(table).values(**values).returning(*table.c)
            )
        except IntegrityError as e:
            raise ConflictError(
                "Record conflicts with an existing one",
                entity_type=table.name,
                entity_id=record.get("id"),
                attempted="create",
            ) from e
        return _to_record(result.mappings().one())

    async def update(self, entity_type, entity_id, changes, expected_version=None):
        table = self._table(entity_type)
        values = _values_for(table, changes, skip=("id", "version"))
        stmt = update(table).where(table.c.id == entity_id)
        if expected_version is not None:
            stmt = stmt.where(table.c.version == expected_version)
        stmt = stmt.values(**values, version=table.c.version + 1).returning(*table.c)
        row = (await self.session.execute(stmt)).mappings().one_or_none()
        if row is not None:
            return _to_record(row)

        current = await self.get(entity_type, entity_id)
        if current is None:
            raise NotFoundError(
                "Record not found",
                entity_type=table.name,
                entity_id=entity_id,
                attempted="update",
            )
        raise ConflictError(
            f"Stale write: expected version {expected_version}, found {current['version']}",
            entity_type=table.name,
            entity_id=entity_id,
            attempted="update",
        )

    async def delete(self, entity_type, entity_id):
        table = self._table(entity_type)
        result = await self.session.execute(delete(table).where(table.c.id == entity_id))
        if result.rowcount == 0:
            raise NotFoundError(
                "Record not found",
                entity_type=table.name,
                entity_id=entity_id,
                attempted="delete",
            )


class SqlEntityStore(EntityStore):
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlEntityStore":
        return cls(create_engine_from_settings(settings))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlTransaction]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield SqlTransaction(session)
        except (SQLAlchemyError, OSError) as e:
            logger.error("sql_store_error", error=str(e))
            raise StorageError(str(e)) from e

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error("sql_store_ping_failed", error=str(e))
            return False
        return True

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("sql_store_closed")
