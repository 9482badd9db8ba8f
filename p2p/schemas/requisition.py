from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from p2p.schemas.common import (
    ApprovalEntry,
    LineItem,
    LineItemCreate,
    UserRef,
    sum_line_totals,
)
from p2p.schemas.status import RequisitionStatus


class RequisitionCreate(BaseModel):
    department: str = Field(..., min_length=1, max_length=200)
    cost_center: str = Field(..., min_length=1, max_length=50)
    budget_code: str = Field(..., min_length=1, max_length=50)
    justification: str = Field(..., min_length=1)
    date_needed: date
    line_items: List[LineItemCreate] = Field(..., min_length=1, max_length=100)


class RequisitionUpdate(BaseModel):
    department: Optional[str] = Field(None, min_length=1, max_length=200)
    cost_center: Optional[str] = Field(None, min_length=1, max_length=50)
    budget_code: Optional[str] = Field(None, min_length=1, max_length=50)
    justification: Optional[str] = Field(None, min_length=1)
    date_needed: Optional[date] = None
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1, max_length=100)


class PurchaseRequisition(BaseModel):
    id: str
    pr_number: str
    requester: UserRef
    department: str
    cost_center: str
    budget_code: str
    justification: str
    date_needed: date
    line_items: List[LineItem] = []
    approvers: List[ApprovalEntry] = []
    status: RequisitionStatus = RequisitionStatus.DRAFT
    version: int = 1
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> Decimal:
        return sum_line_totals(self.line_items)
