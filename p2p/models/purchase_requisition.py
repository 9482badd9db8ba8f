from datetime import datetime, date
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy import (
    JSON,
    String,
    Integer,
    Numeric,
    DateTime,
    Date,
    Text,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from p2p.database import Base


class PurchaseRequisitionRow(Base):
    __tablename__ = "purchase_requisitions"
    sort_column: ClassVar[str] = "date_created"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    pr_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    requester_id: Mapped[str] = mapped_column(String(100), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(200), nullable=False)
    requester_email: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    cost_center: Mapped[str] = mapped_column(String(50), nullable=False)
    budget_code: Mapped[str] = mapped_column(String(50), nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    date_needed: Mapped[date] = mapped_column(Date, nullable=False)
    line_items: Mapped[list] = mapped_column(JSON, default=list)
    approvers: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(50), default="DRAFT")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("version > 0", name="chk_pr_version_positive"),
        Index("idx_pr_status", "status"),
        Index("idx_pr_cost_center", "cost_center"),
        Index("idx_pr_requester", "requester_id"),
    )
