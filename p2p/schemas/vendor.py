from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from p2p.schemas.status import VendorStatus


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    contact_person: str = ""
    email: EmailStr
    phone: str = Field("", max_length=30)
    address: str = ""
    tax_id: str = Field("", max_length=50)
    payment_terms: str = "Net 30"
    categories: List[str] = []
    status: VendorStatus = VendorStatus.ACTIVE


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    contact_person: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=50)
    payment_terms: Optional[str] = None
    categories: Optional[List[str]] = None
    status: Optional[VendorStatus] = None


class Vendor(BaseModel):
    id: str
    name: str
    contact_person: str = ""
    email: str
    phone: str = ""
    address: str = ""
    tax_id: str = ""
    payment_terms: str = ""
    categories: List[str] = []
    status: VendorStatus = VendorStatus.ACTIVE
    created_at: datetime
    updated_at: datetime
