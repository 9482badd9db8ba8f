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


class PurchaseOrderRow(Base):
    __tablename__ = "purchase_orders"
    sort_column: ClassVar[str] = "date_created"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    pr_id: Mapped[Optional[str]] = mapped_column(String(36))
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    cost_center: Mapped[Optional[str]] = mapped_column(String(50))
    line_items: Mapped[list] = mapped_column(JSON, default=list)
    approvers: Mapped[list] = mapped_column(JSON, default=list)
    shipping_address: Mapped[str] = mapped_column(Text, default="")
    billing_address: Mapped[str] = mapped_column(Text, default="")
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    required_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(50), default="DRAFT")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("version > 0", name="chk_po_version_positive"),
        Index("idx_po_vendor", "vendor_id"),
        Index("idx_po_status", "status"),
        Index("idx_po_pr", "pr_id"),
    )
