from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from p2p.middleware.auth import get_identity
from p2p.middleware.workflow import get_engine
from p2p.schemas.common import PaginatedResponse, build_pagination
from p2p.schemas.receipt import GoodsReceipt, ReceiptAmend, ReceiptCreate, ReceiptResult
from p2p.services.identity import Identity
from p2p.services.workflow_service import WorkflowEngine

router = APIRouter()


@router.get("", response_model=PaginatedResponse[GoodsReceipt])
async def list_receipts(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    po_id: Optional[str] = Query(None),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    total = await engine.count_receipts(po_id=po_id)
    items = await engine.list_receipts(po_id=po_id, offset=(page - 1) * limit, limit=limit)
    return PaginatedResponse(data=items, pagination=build_pagination(page, limit, total))


@router.get("/{receipt_id}", response_model=GoodsReceipt)
async def get_receipt(
    receipt_id: str,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.get_receipt(receipt_id)


@router.post("", response_model=ReceiptResult, status_code=status.HTTP_201_CREATED)
async def create_receipt(
    body: ReceiptCreate,
    expected_version: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.record_receipt(identity, body, expected_version=expected_version)


@router.patch("/{receipt_id}", response_model=ReceiptResult)
async def amend_receipt(
    receipt_id: str,
    body: ReceiptAmend,
    identity: Identity = Depends(get_identity),
    engine: WorkflowEngine = Depends(get_engine),
):
    return await engine.amend_receipt(identity, receipt_id, body)
