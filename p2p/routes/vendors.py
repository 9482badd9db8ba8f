from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_store
from p2p.schemas.common import PaginatedResponse, build_pagination
from p2p.schemas.status import VendorStatus
from p2p.schemas.vendor import Vendor, VendorCreate, VendorUpdate
from p2p.services import vendor_service
from p2p.services.identity import Identity
from p2p.services.store import EntityStore

router = APIRouter()


@router.get("", response_model=PaginatedResponse[Vendor])
async def list_vendors(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[VendorStatus] = Query(None),
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    total = await vendor_service.count_vendors(store, status)
    items = await vendor_service.list_vendors(store, status, offset=(page - 1) * limit, limit=limit)
    return PaginatedResponse(data=items, pagination=build_pagination(page, limit, total))


@router.get("/{vendor_id}", response_model=Vendor)
async def get_vendor(
    vendor_id: str,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await vendor_service.get_vendor(store, vendor_id)


@router.post("", response_model=Vendor, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    body: VendorCreate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await vendor_service.create_vendor(store, identity, body)


@router.patch("/{vendor_id}", response_model=Vendor)
async def update_vendor(
    vendor_id: str,
    body: VendorUpdate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await vendor_service.update_vendor(store, identity, vendor_id, body)
