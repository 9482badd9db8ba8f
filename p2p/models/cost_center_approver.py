from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import String, Integer, Numeric, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from p2p.database import Base


class CostCenterApproverRow(Base):
    __tablename__ = "cost_center_approvers"
    sort_column: ClassVar[str] = "created_at"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_center: Mapped[str] = mapped_column(String(50), nullable=False)
    approval_limit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "cost_center", name="uq_cost_center_approver"),
        Index("idx_cca_cost_center", "cost_center"),
    )
