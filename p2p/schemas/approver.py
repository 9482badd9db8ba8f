from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CostCenterApproverCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=3)
    cost_center: str = Field(..., min_length=1, max_length=50)
    approval_limit: Decimal = Field(..., ge=0)


class CostCenterApproverUpdate(BaseModel):
    cost_center: Optional[str] = Field(None, min_length=1, max_length=50)
    approval_limit: Optional[Decimal] = Field(None, ge=0)


class CostCenterApprover(BaseModel):
    id: str
    user_id: str
    user_name: str
    user_email: str
    cost_center: str
    approval_limit: Decimal
    created_at: datetime


class ApprovalStepResponse(BaseModel):
    id: str
    name: str
    email: str
    approval_limit: Optional[Decimal] = None
    exceeds_limit: bool = False
