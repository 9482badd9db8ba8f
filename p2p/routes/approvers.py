from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_engine, get_store
from p2p.schemas.approver import (
    ApprovalStepResponse,
    CostCenterApprover,
    CostCenterApproverCreate,
    CostCenterApproverUpdate,
)
from p2p.services import approval_service
from p2p.services.identity import Identity
from p2p.services.store import EntityStore
from p2p.services.workflow_service import WorkflowEngine

router = APIRouter()


@router.get("", response_model=List[CostCenterApprover])
async def list_bindings(
    cost_center: Optional[str] = Query(None),
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await approval_service.list_bindings(store, cost_center)


@router.get("/resolve", response_model=List[ApprovalStepResponse])
async def resolve_approvers(
    cost_center: str = Query(..., min_length=1),
    total_amount: Decimal = Query(..., ge=0),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    """Preview who would have to approve ``total_amount`` on ``cost_center``."""
    steps = await approval_service.preview_approvers(
        engine.store, cost_center, total_amount, engine.settings
    )
    return [ApprovalStepResponse(**vars(s)) for s in steps]


@router.post("", response_model=CostCenterApprover, status_code=status.HTTP_201_CREATED)
async def create_binding(
    body: CostCenterApproverCreate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await approval_service.create_binding(store, identity, body)


@router.patch("/{binding_id}", response_model=CostCenterApprover)
async def update_binding(
    binding_id: str,
    body: CostCenterApproverUpdate,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    return await approval_service.update_binding(store, identity, binding_id, body)


@router.delete("/{binding_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_binding(
    binding_id: str,
    identity: Identity = Depends(get_identity),
    store: EntityStore = Depends(get_store),
):
    await approval_service.delete_binding(store, identity, binding_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
