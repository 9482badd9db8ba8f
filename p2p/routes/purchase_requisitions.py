from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_engine
from p2p.schemas.common import Decision, PaginatedResponse, RejectDecision, build_pagination
from p2p.schemas.purchase_order import ConversionResult, ConvertRequest
from p2p.schemas.requisition import PurchaseRequisition, RequisitionCreate, RequisitionUpdate
from p2p.schemas.status import ApprovalStatus, RequisitionStatus
from p2p.services.identity import Identity
from p2p.services.workflow_service import WorkflowEngine

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PurchaseRequisition])
async def list_requisitions(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[RequisitionStatus] = Query(None),
    requester_id: Optional[str] = Query(None),
    cost_center: Optional[str] = Query(None),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    filters = dict(status=status, requester_id=requester_id, cost_center=cost_center)
    total = await engine.count_requisitions(**filters)
    items = await engine.list_requisitions(**filters, offset=(page - 1) * limit, limit=limit)
    return PaginatedResponse(data=items, pagination=build_pagination(page, limit, total))


@router.get("/{pr_id}", response_model=PurchaseRequisition)
async def get_requisition(
    pr_id: str,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.get_requisition(pr_id)


@router.post("", response_model=PurchaseRequisition, status_code=status.HTTP_201_CREATED)
async def create_requisition(
    body: RequisitionCreate,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.create_requisition(identity, body)


@router.put("/{pr_id}", response_model=PurchaseRequisition)
async def update_requisition(
    pr_id: str,
    body: RequisitionUpdate,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.update_requisition(identity, pr_id, body, expected_version=expected_version)


@router.post("/{pr_id}/submit", response_model=PurchaseRequisition)
async def submit_requisition(
    pr_id: str,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.submit_requisition(identity, pr_id, expected_version=expected_version)


@router.post("/{pr_id}/approve", response_model=PurchaseRequisition)
async def approve_requisition(
    pr_id: str,
    body: Decision = Decision(),
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.decide_requisition(
        identity,
        pr_id,
        identity.current_user().id,
        ApprovalStatus.APPROVED,
        body.comment,
        expected_version=expected_version,
    )


@router.post("/{pr_id}/reject", response_model=PurchaseRequisition)
async def reject_requisition(
    pr_id: str,
    body: RejectDecision,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.decide_requisition(
        identity,
        pr_id,
        identity.current_user().id,
        ApprovalStatus.REJECTED,
        body.reason,
        expected_version=expected_version,
    )


@router.post("/{pr_id}/convert", response_model=ConversionResult, status_code=status.HTTP_201_CREATED)
async def convert_requisition(
    pr_id: str,
    body: ConvertRequest = ConvertRequest(),
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.convert_to_purchase_order(
        identity, pr_id, body.vendor_id, expected_version=expected_version
    )
