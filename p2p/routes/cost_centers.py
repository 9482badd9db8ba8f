from typing import List

from fastapi import APIRouter, Depends, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_store
from p2p.schemas.cost_center import CostCenter, CostCenterCreate, CostCenterUpdate
from p2p.services import cost_center_service
from p2p.services.identity import Identity
from p2p.services.store import EntityStore

router = APIRouter()


@router.get("", response_model=List[CostCenter])
async def list_cost_centers(
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await cost_center_service.list_cost_centers(store)


@router.get("/{cost_center_id}", response_model=CostCenter)
async def get_cost_center(
    cost_center_id: str,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await cost_center_service.get_cost_center(store, cost_center_id)


@router.post("", response_model=CostCenter, status_code=status.HTTP_201_CREATED)
async def create_cost_center(
    body: CostCenterCreate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await cost_center_service.create_cost_center(store, identity, body)


@router.patch("/{cost_center_id}", response_model=CostCenter)
async def update_cost_center(
    cost_center_id: str,
    body: CostCenterUpdate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await cost_center_service.update_cost_center(store, identity, cost_center_id, body)
