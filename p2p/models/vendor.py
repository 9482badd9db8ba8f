from datetime import datetime
from typing import ClassVar

from sqlalchemy import JSON, String, Integer, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from p2p.database import Base


class VendorRow(Base):
    __tablename__ = "vendors"
    sort_column: ClassVar[str] = "created_at"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_person: Mapped[str] = mapped_column(String(200), default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), default="")
    address: Mapped[str] = mapped_column(Text, default="")
    tax_id: Mapped[str] = mapped_column(String(50), default="")
    payment_terms: Mapped[str] = mapped_column(String(100), default="")
    category: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_vendors_status", "status"),
        Index("idx_vendors_email", "email"),
    )
