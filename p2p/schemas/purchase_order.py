from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from p2p.schemas.common import ApprovalEntry, LineItem, LineItemCreate, sum_line_totals
from p2p.schemas.requisition import PurchaseRequisition
from p2p.schemas.status import PurchaseOrderStatus


class PurchaseOrderCreate(BaseModel):
    vendor_id: str
    cost_center: Optional[str] = Field(None, max_length=50)
    line_items: List[LineItemCreate] = Field(..., min_length=1, max_length=100)
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    required_date: Optional[date] = None


class PurchaseOrderUpdate(BaseModel):
    vendor_id: Optional[str] = None
    cost_center: Optional[str] = Field(None, max_length=50)
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1, max_length=100)
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    required_date: Optional[date] = None


class ConvertRequest(BaseModel):
    vendor_id: Optional[str] = None


class PurchaseOrder(BaseModel):
    id: str
    pr_id: Optional[str] = None
    po_number: str
    vendor_id: str
    cost_center: Optional[str] = None
    line_items: List[LineItem] = []
    approvers: List[ApprovalEntry] = []
    shipping_address: str = ""
    billing_address: str = ""
    currency: str = "USD"
    required_date: Optional[date] = None
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    version: int = 1
    created_at: datetime
    updated_at: datetime
    sent_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> Decimal:
        return sum_line_totals(self.line_items)


class ConversionResult(BaseModel):
    requisition: PurchaseRequisition
    purchase_order: PurchaseOrder
