from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from p2p.schemas.purchase_order import PurchaseOrder
from p2p.schemas.status import ReceiptLineStatus, ReceiptStatus


class LineFulfillment(BaseModel):
    line_item_id: str
    quantity_received: int = Field(..., ge=1)
    damaged: bool = False
    notes: Optional[str] = Field(None, max_length=1000)


class ReceiptCreate(BaseModel):
    po_id: str
    line_items: List[LineFulfillment] = Field(..., min_length=1)
    delivery_note: Optional[str] = None
    carrier: Optional[str] = None


class ReceiptAmend(BaseModel):
    line_items: List[LineFulfillment] = Field(..., min_length=1)


class ReceiverRef(BaseModel):
    id: str
    name: str


class GoodsReceiptLine(BaseModel):
    line_item_id: str
    description: str
    quantity_ordered: int
    quantity_received: int
    status: ReceiptLineStatus
    notes: Optional[str] = None


class GoodsReceipt(BaseModel):
    id: str
    receipt_number: str
    po_id: str
    po_number: str
    received_by: ReceiverRef
    received_at: datetime
    line_items: List[GoodsReceiptLine] = []
    delivery_note: Optional[str] = None
    carrier: Optional[str] = None
    status: ReceiptStatus
    created_at: datetime
    updated_at: datetime


class ReceiptResult(BaseModel):
    purchase_order: PurchaseOrder
    receipt: GoodsReceipt
