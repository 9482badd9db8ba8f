"""
Cost centers: the reference list approver bindings are attached to.

Requisitions and purchase orders keep ``cost_center`` as free text so that an
unknown code still falls through to the default approver; only bindings are
checked against this list.
"""

from typing import Union

import structlog

from p2p.errors import NotFoundError
from p2p.schemas.common import parse_input, utcnow
from p2p.schemas.cost_center import CostCenter, CostCenterCreate, CostCenterUpdate
from p2p.services.identity import Identity, Permission
from p2p.services.mappers import cost_center_from_wire, cost_center_to_wire
from p2p.services.store import EntityStore, EntityType, StoreTransaction

logger = structlog.get_logger()


async def load_cost_center(tx: StoreTransaction, cost_center_id: str) -> CostCenter:
    row = await tx.get(EntityType.COST_CENTER, cost_center_id)
    if row is None:
        raise NotFoundError(
            f"Cost center '{cost_center_id}' does not exist",
            entity_type=EntityType.COST_CENTER.value,
            entity_id=cost_center_id,
        )
    return cost_center_from_wire(row)


async def list_cost_centers(store: EntityStore) -> list[CostCenter]:
    async with store.transaction() as tx:
        rows = await tx.list(EntityType.COST_CENTER)
    return sorted((cost_center_from_wire(r) for r in rows), key=lambda cc: cc.id)


async def get_cost_center(store: EntityStore, cost_center_id: str) -> CostCenter:
    async with store.transaction() as tx:
        return await load_cost_center(tx, cost_center_id)


async def create_cost_center(
    store: EntityStore, identity: Identity, data: Union[CostCenterCreate, dict]
) -> CostCenter:
    """Add a cost center. A duplicate id raises ConflictError from the store."""
    identity.require(Permission.MANAGE_USERS, action="create_cost_center")
    body = parse_input(CostCenterCreate, data, entity_type=EntityType.COST_CENTER.value)

    now = utcnow()
    cost_center = CostCenter(
        id=body.id,
        name=body.name,
        description=body.description,
        created_at=now,
        updated_at=now,
    )
    async with store.transaction() as tx:
        await tx.create(EntityType.COST_CENTER, cost_center_to_wire(cost_center))

    logger.info("cost_center_created", cost_center_id=cost_center.id, name=cost_center.name)
    return cost_center


async def update_cost_center(
    store: EntityStore,
    identity: Identity,
    cost_center_id: str,
    data: Union[CostCenterUpdate, dict],
) -> CostCenter:
    identity.require(
        Permission.MANAGE_USERS,
        action="update_cost_center",
        entity_type=EntityType.COST_CENTER.value,
        entity_id=cost_center_id,
    )
    body = parse_input(CostCenterUpdate, data, entity_type=EntityType.COST_CENTER.value)

    async with store.transaction() as tx:
        row = await tx.get(EntityType.COST_CENTER, cost_center_id, for_update=True)
        if row is None:
            raise NotFoundError(
                f"Cost center '{cost_center_id}' does not exist",
                entity_type=EntityType.COST_CENTER.value,
                entity_id=cost_center_id,
            )
        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        current = cost_center_from_wire(row)
        cost_center = current.model_copy(update={**changes, "updated_at": utcnow()})
        await tx.update(
            EntityType.COST_CENTER,
            cost_center_id,
            cost_center_to_wire(cost_center),
            expected_version=row.get("version"),
        )

    logger.info("cost_center_updated", cost_center_id=cost_center_id, fields=sorted(changes))
    return cost_center
