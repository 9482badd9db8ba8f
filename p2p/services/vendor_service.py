"""
Vendor records and the vendor-selection strategy used at PR conversion.
"""

from typing import Callable, Optional, Union

import structlog

from p2p.errors import NotFoundError, ValidationError
from p2p.schemas.common import new_id, parse_input, utcnow
from p2p.schemas.requisition import PurchaseRequisition
from p2p.schemas.status import VendorStatus
from p2p.schemas.vendor import Vendor, VendorCreate, VendorUpdate
from p2p.services.identity import Identity, Permission
from p2p.services.mappers import vendor_from_wire, vendor_to_wire
from p2p.services.store import EntityStore, EntityType, StoreTransaction

logger = structlog.get_logger()

VendorSelector = Callable[[PurchaseRequisition, list[Vendor]], Optional[Vendor]]


def first_active_vendor(pr: PurchaseRequisition, vendors: list[Vendor]) -> Optional[Vendor]:
    """Oldest ACTIVE vendor. Placeholder until real sourcing rules exist."""
    return next((v for v in vendors if v.status == VendorStatus.ACTIVE), None)


async def load_vendor(tx: StoreTransaction, vendor_id: str) -> Vendor:
    row = await tx.get(EntityType.VENDOR, vendor_id)
    if row is None:
        raise NotFoundError(
            "Vendor not found", entity_type=EntityType.VENDOR.value, entity_id=vendor_id
        )
    return vendor_from_wire(row)


async def require_active_vendor(tx: StoreTransaction, vendor_id: str) -> Vendor:
    vendor = await load_vendor(tx, vendor_id)
    if vendor.status != VendorStatus.ACTIVE:
        raise ValidationError(
            f"Vendor '{vendor.name}' is not active",
            entity_type=EntityType.VENDOR.value,
            entity_id=vendor_id,
            current_state=vendor.status.value,
        )
    return vendor


async def select_vendor(
    tx: StoreTransaction,
    pr: PurchaseRequisition,
    selector: VendorSelector,
    vendor_id: Optional[str] = None,
) -> Vendor:
    if vendor_id:
        return await require_active_vendor(tx, vendor_id)

    rows = await tx.list(EntityType.VENDOR)
    vendor = selector(pr, [vendor_from_wire(r) for r in rows])
    if vendor is None:
        raise ValidationError(
            "No active vendor available for conversion",
            entity_type=EntityType.REQUISITION.value,
            entity_id=pr.id,
            attempted="convert_to_po",
        )
    return vendor


async def list_vendors(
    store: EntityStore,
    status: Optional[VendorStatus] = None,
    *,
    offset: int = 0,
    limit: Optional[int] = None,
) -> list[Vendor]:
    filters = {"status": VendorStatus(status).value} if status else None
    async with store.transaction() as tx:
        rows = await tx.list(EntityType.VENDOR, filters, offset=offset, limit=limit)
    return [vendor_from_wire(r) for r in rows]


async def count_vendors(store: EntityStore, status: Optional[VendorStatus] = None) -> int:
    filters = {"status": VendorStatus(status).value} if status else None
    async with store.transaction() as tx:
        return await tx.count(EntityType.VENDOR, filters)


async def get_vendor(store: EntityStore, vendor_id: str) -> Vendor:
    async with store.transaction() as tx:
        return await load_vendor(tx, vendor_id)


async def create_vendor(
    store: EntityStore, identity: Identity, data: Union[VendorCreate, dict]
) -> Vendor:
    identity.require(Permission.MANAGE_VENDORS, action="create_vendor")
    body = parse_input(VendorCreate, data, entity_type=EntityType.VENDOR.value)

    now = utcnow()
    vendor = Vendor(
        id=new_id(),
        name=body.name,
        contact_person=body.contact_person,
        email=str(body.email),
        phone=body.phone,
        address=body.address,
        tax_id=body.tax_id,
        payment_terms=body.payment_terms,
        categories=body.categories,
        status=body.status,
        created_at=now,
        updated_at=now,
    )
    async with store.transaction() as tx:
        await tx.create(EntityType.VENDOR, vendor_to_wire(vendor))

    logger.info("vendor_created", vendor_id=vendor.id, name=vendor.name)
    return vendor


async def update_vendor(
    store: EntityStore, identity: Identity, vendor_id: str, data: Union[VendorUpdate, dict]
) -> Vendor:
    identity.require(Permission.MANAGE_VENDORS, action="update_vendor", entity_id=vendor_id)
    body = parse_input(VendorUpdate, data, entity_type=EntityType.VENDOR.value)

    async with store.transaction() as tx:
        row = await tx.get(EntityType.VENDOR, vendor_id, for_update=True)
        if row is None:
            raise NotFoundError(
                "Vendor not found", entity_type=EntityType.VENDOR.value, entity_id=vendor_id
            )
        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes:
            changes["email"] = str(changes["email"])
        current = vendor_from_wire(row)
        vendor = Vendor.model_validate({**current.model_dump(), **changes, "updated_at": utcnow()})
        await tx.update(
            EntityType.VENDOR,
            vendor_id,
            vendor_to_wire(vendor),
            expected_version=row.get("version"),
        )

    logger.info("vendor_updated", vendor_id=vendor_id, fields=sorted(changes))
    return vendor
