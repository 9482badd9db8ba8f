from datetime import datetime
from typing import ClassVar, Optional

from sqlalchemy import (
    JSON,
    String,
    Integer,
    DateTime,
    Text,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from p2p.database import Base


class GoodsReceiptRow(Base):
    __tablename__ = "goods_receipts"
    sort_column: ClassVar[str] = "created_at"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    receipt_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    po_id: Mapped[str] = mapped_column(String(36), nullable=False)
    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    receiver_id: Mapped[str] = mapped_column(String(100), nullable=False)
    receiver_name: Mapped[str] = mapped_column(String(200), nullable=False)
    date_received: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    line_items: Mapped[list] = mapped_column(JSON, default=list)
    delivery_note: Mapped[Optional[str]] = mapped_column(Text)
    carrier: Mapped[Optional[str]] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('COMPLETED','PARTIAL')",
            name="chk_goods_receipt_status",
        ),
        Index("idx_goods_receipts_po", "po_id"),
    )
