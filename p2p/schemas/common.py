import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from p2p.errors import ValidationError
from p2p.schemas.status import ApprovalStatus

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T] = Field(default_factory=list)  # type: ignore[assignment]
    pagination: PaginationMeta


def build_pagination(page: int, limit: int, total: int) -> PaginationMeta:
    total_pages = max(1, (total + limit - 1) // limit)
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


# ---------- line items ----------


class LineItemCreate(BaseModel):
    description: str = Field(..., max_length=500)
    category: str = ""
    quantity: int = Field(..., gt=0, le=999999)
    unit_price: Decimal = Field(..., gt=0)
    delivery_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description must not be empty")
        return v


class LineItem(BaseModel):
    id: str
    description: str
    category: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    delivery_date: Optional[date] = None
    notes: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price


def sum_line_totals(line_items: List[LineItem]) -> Decimal:
    return sum((li.total_price for li in line_items), Decimal("0"))


# ---------- approvals ----------


class ApprovalEntry(BaseModel):
    approver_id: str
    approver_name: str
    approver_email: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None
    approval_limit: Optional[Decimal] = None

    @model_validator(mode="after")
    def decision_fields_consistent(self):
        decided = self.status != ApprovalStatus.PENDING
        if decided != (self.decided_at is not None):
            raise ValueError("decided_at must be set exactly when a decision exists")
        return self


class Decision(BaseModel):
    comment: Optional[str] = Field(None, max_length=500)


class RejectDecision(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class UserRef(BaseModel):
    id: str
    name: str
    email: str = ""


# ---------- helpers ----------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_input(model_cls: Type[M], data: Union[M, dict], *, entity_type: Optional[str] = None) -> M:
    """Validate caller input, reporting failures as the domain ValidationError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model_cls.__name__}",
            entity_type=entity_type,
            attempted="validate",
            details=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
