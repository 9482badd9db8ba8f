from typing import Dict

from pydantic import BaseModel


class StatusSummary(BaseModel):
    requisitions: Dict[str, int]
    purchase_orders: Dict[str, int]
    pending_approvals: int
    awaiting_receipt: int
