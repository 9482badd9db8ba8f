from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_engine
from p2p.schemas.common import Decision, PaginatedResponse, RejectDecision, build_pagination
from p2p.schemas.purchase_order import PurchaseOrder, PurchaseOrderCreate, PurchaseOrderUpdate
from p2p.schemas.status import ApprovalStatus, PurchaseOrderStatus
from p2p.services.identity import Identity
from p2p.services.workflow_service import WorkflowEngine

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PurchaseOrder])
async def list_purchase_orders(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[PurchaseOrderStatus] = Query(None),
    vendor_id: Optional[str] = Query(None),
    pr_id: Optional[str] = Query(None),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    filters = dict(status=status, vendor_id=vendor_id, pr_id=pr_id)
    total = await engine.count_purchase_orders(**filters)
    items = await engine.list_purchase_orders(**filters, offset=(page - 1) * limit, limit=limit)
    return PaginatedResponse(data=items, pagination=build_pagination(page, limit, total))


@router.get("/{po_id}", response_model=PurchaseOrder)
async def get_purchase_order(
    po_id: str,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.get_purchase_order(po_id)


@router.post("", response_model=PurchaseOrder, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    body: PurchaseOrderCreate,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.create_purchase_order(identity, body)


@router.put("/{po_id}", response_model=PurchaseOrder)
async def update_purchase_order(
    po_id: str,
    body: PurchaseOrderUpdate,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.update_purchase_order(identity, po_id, body, expected_version=expected_version)


@router.post("/{po_id}/submit", response_model=PurchaseOrder)
async def submit_purchase_order(
    po_id: str,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.submit_purchase_order(identity, po_id, expected_version=expected_version)


@router.post("/{po_id}/approve", response_model=PurchaseOrder)
async def approve_purchase_order(
    po_id: str,
    body: Decision = Decision(),
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.decide_purchase_order(
        identity,
        po_id,
        identity.current_user().id,
        ApprovalStatus.APPROVED,
        body.comment,
        expected_version=expected_version,
    )


@router.post("/{po_id}/reject", response_model=PurchaseOrder)
async def reject_purchase_order(
    po_id: str,
    body: RejectDecision,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.decide_purchase_order(
        identity,
        po_id,
        identity.current_user().id,
        ApprovalStatus.REJECTED,
        body.reason,
        expected_version=expected_version,
    )


@router.post("/{po_id}/send", response_model=PurchaseOrder)
async def send_purchase_order(
    po_id: str,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.send_to_vendor(identity, po_id, expected_version=expected_version)
