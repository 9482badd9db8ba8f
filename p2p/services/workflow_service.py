"""
Workflow engine: purchase requisition and purchase order state machines,
PR -> PO conversion and goods-receipt reconciliation.

Requisition:
  DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED
  APPROVED -> CONVERTED_TO_PO

Purchase order:
  DRAFT -> PENDING_APPROVAL -> APPROVED | REJECTED
  APPROVED -> SENT_TO_VENDOR -> PARTIALLY_FULFILLED | COMPLETED
  PARTIALLY_FULFILLED -> PARTIALLY_FULFILLED | COMPLETED

Every mutation runs in one store transaction while holding the entity's
in-process lock, and writes with the version it read. Notifications go out
only after the transaction commits.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from p2p.config import Settings, get_settings
from p2p.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from p2p.schemas.common import (
    ApprovalEntry,
    LineItem,
    LineItemCreate,
    UserRef,
    new_id,
    parse_input,
    utcnow,
)
from p2p.schemas.purchase_order import (
    ConversionResult,
    PurchaseOrder,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
)
from p2p.schemas.receipt import (
    GoodsReceipt,
    ReceiptAmend,
    ReceiptCreate,
    ReceiptResult,
    ReceiverRef,
)
from p2p.schemas.report import StatusSummary
from p2p.schemas.requisition import PurchaseRequisition, RequisitionCreate, RequisitionUpdate
from p2p.schemas.status import (
    ApprovalStatus,
    PurchaseOrderStatus,
    ReceiptStatus,
    RequisitionStatus,
)
from p2p.services import fulfillment_service
from p2p.services.approval_service import apply_decision, build_approval_entries, resolve_approvers
from p2p.services.identity import Identity, Permission
from p2p.services.mappers import (
    purchase_order_from_wire,
    purchase_order_to_wire,
    receipt_from_wire,
    receipt_to_wire,
    requisition_from_wire,
    requisition_to_wire,
)
from p2p.services.notification_service import (
    NotificationEvent,
    NotificationSink,
    build_notification_sink,
)
from p2p.services.store import EntityStore, EntityType, StoreTransaction
from p2p.services.vendor_service import (
    VendorSelector,
    first_active_vendor,
    load_vendor,
    require_active_vendor,
    select_vendor,
)

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)

T = TypeVar("T")

PR_PREFIX = "PR"
PO_PREFIX = "PO"
RECEIPT_PREFIX = "GR"

PR_TRANSITIONS: dict[RequisitionStatus, frozenset[RequisitionStatus]] = {
    RequisitionStatus.DRAFT: frozenset({RequisitionStatus.PENDING_APPROVAL}),
    RequisitionStatus.PENDING_APPROVAL: frozenset(
        {RequisitionStatus.APPROVED, RequisitionStatus.REJECTED}
    ),
    RequisitionStatus.APPROVED: frozenset({RequisitionStatus.CONVERTED_TO_PO}),
}

PO_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.PENDING_APPROVAL}),
    PurchaseOrderStatus.PENDING_APPROVAL: frozenset(
        {PurchaseOrderStatus.APPROVED, PurchaseOrderStatus.REJECTED}
    ),
    PurchaseOrderStatus.APPROVED: frozenset({PurchaseOrderStatus.SENT_TO_VENDOR}),
    PurchaseOrderStatus.SENT_TO_VENDOR: frozenset(
        {PurchaseOrderStatus.PARTIALLY_FULFILLED, PurchaseOrderStatus.COMPLETED}
    ),
    PurchaseOrderStatus.PARTIALLY_FULFILLED: frozenset(
        {PurchaseOrderStatus.PARTIALLY_FULFILLED, PurchaseOrderStatus.COMPLETED}
    ),
}

RECEIVABLE_PO_STATUSES = frozenset(
    {PurchaseOrderStatus.SENT_TO_VENDOR, PurchaseOrderStatus.PARTIALLY_FULFILLED}
)


class KeyedLock:
    """One asyncio.Lock per key, dropped when nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


def _ensure_transition(table: dict, current, target, *, entity_type: EntityType, entity_id: str, attempted: str) -> None:
    if target not in table.get(current, frozenset()):
        raise InvalidStateError(
            f"Cannot {attempted} while in {current.value} status",
            entity_type=entity_type.value,
            entity_id=entity_id,
            current_state=current.value,
            attempted=attempted,
        )


def _check_version(entity_type: EntityType, entity_id: str, current: int, expected: Optional[int]) -> None:
    if expected is not None and expected != current:
        raise ConflictError(
            f"Stale write: expected version {expected}, found {current}",
            entity_type=entity_type.value,
            entity_id=entity_id,
            attempted="update",
        )


def _new_line_items(items: list[LineItemCreate]) -> list[LineItem]:
    return [LineItem(id=new_id(), **item.model_dump()) for item in items]


def _copy_line_items(items: list[LineItem]) -> list[LineItem]:
    return [li.model_copy(update={"id": new_id()}, deep=True) for li in items]


async def _next_number(tx: StoreTransaction, entity_type: EntityType, prefix: str) -> str:
    count = await tx.count(entity_type) + 1
    return f"{prefix}-{count:06d}"


def _approval_requests(kind: str, approvers: list[ApprovalEntry], payload: dict) -> list[NotificationEvent]:
    return [
        NotificationEvent(kind=kind, recipient_email=a.approver_email, payload=payload)
        for a in approvers
        if a.approver_email
    ]


class WorkflowEngine:
    def __init__(
        self,
        store: EntityStore,
        notifier: Optional[NotificationSink] = None,
        *,
        vendor_selector: VendorSelector = first_active_vendor,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.notifier = notifier or build_notification_sink(self.settings)
        self.vendor_selector = vendor_selector
        self._locks = KeyedLock()

    # ---------- plumbing ----------

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Re-run a whole transactional operation on StorageError only."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(StorageError),
            stop=stop_after_attempt(max(1, self.settings.STORE_RETRY_ATTEMPTS)),
            wait=wait_exponential(multiplier=0.1, max=2),
            before_sleep=before_sleep_log(_std_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                result = await operation()
        return result

    async def _dispatch(self, events: list[NotificationEvent]) -> None:
        for event in events:
            try:
                await self.notifier.notify(event)
            except Exception as exc:
                logger.error(
                    "notification_failed",
                    kind=event.kind,
                    recipient=event.recipient_email,
                    error=str(exc),
                )

    async def _load_requisition(self, tx: StoreTransaction, pr_id: str, *, for_update: bool = False) -> PurchaseRequisition:
        row = await tx.get(EntityType.REQUISITION, pr_id, for_update=for_update)
        if row is None:
            raise NotFoundError(
                "Purchase requisition not found",
                entity_type=EntityType.REQUISITION.value,
                entity_id=pr_id,
            )
        return requisition_from_wire(row)

    async def _save_requisition(self, tx: StoreTransaction, pr: PurchaseRequisition) -> PurchaseRequisition:
        row = await tx.update(
            EntityType.REQUISITION, pr.id, requisition_to_wire(pr), expected_version=pr.version
        )
        return requisition_from_wire(row)

    async def _load_purchase_order(self, tx: StoreTransaction, po_id: str, *, for_update: bool = False) -> PurchaseOrder:
        row = await tx.get(EntityType.PURCHASE_ORDER, po_id, for_update=for_update)
        if row is None:
            raise NotFoundError(
                "Purchase order not found",
                entity_type=EntityType.PURCHASE_ORDER.value,
                entity_id=po_id,
            )
        return purchase_order_from_wire(row)

    async def _save_purchase_order(self, tx: StoreTransaction, po: PurchaseOrder) -> PurchaseOrder:
        row = await tx.update(
            EntityType.PURCHASE_ORDER, po.id, purchase_order_to_wire(po), expected_version=po.version
        )
        return purchase_order_from_wire(row)

    async def _load_receipts(self, tx: StoreTransaction, po_id: str) -> list[GoodsReceipt]:
        rows = await tx.list(EntityType.GOODS_RECEIPT, {"po_id": po_id})
        return [receipt_from_wire(r) for r in rows]

    async def _source_requester(self, tx: StoreTransaction, po: PurchaseOrder) -> Optional[UserRef]:
        if not po.pr_id:
            return None
        row = await tx.get(EntityType.REQUISITION, po.pr_id)
        return requisition_from_wire(row).requester if row is not None else None

    # ---------- purchase requisitions ----------

    async def create_requisition(
        self, identity: Identity, data: Union[RequisitionCreate, dict]
    ) -> PurchaseRequisition:
        user = identity.require(
            Permission.CREATE_PR, action="create", entity_type=EntityType.REQUISITION.value
        )
        body = parse_input(RequisitionCreate, data, entity_type=EntityType.REQUISITION.value)

        now = utcnow()
        async with self.store.transaction() as tx:
            pr = PurchaseRequisition(
                id=new_id(),
                pr_number=await _next_number(tx, EntityType.REQUISITION, PR_PREFIX),
                requester=UserRef(id=user.id, name=user.name, email=user.email),
                department=body.department,
                cost_center=body.cost_center,
                budget_code=body.budget_code,
                justification=body.justification,
                date_needed=body.date_needed,
                line_items=_new_line_items(body.line_items),
                status=RequisitionStatus.DRAFT,
                version=1,
                created_at=now,
                updated_at=now,
            )
            row = await tx.create(EntityType.REQUISITION, requisition_to_wire(pr))
        pr = requisition_from_wire(row)

        logger.info(
            "pr_created",
            pr_id=pr.id,
            pr_number=pr.pr_number,
            total_amount=str(pr.total_amount),
            requester_id=user.id,
        )
        return pr

    async def update_requisition(
        self,
        identity: Identity,
        pr_id: str,
        data: Union[RequisitionUpdate, dict],
        *,
        expected_version: Optional[int] = None,
    ) -> PurchaseRequisition:
        user = identity.require(
            Permission.CREATE_PR, action="update", entity_type=EntityType.REQUISITION.value, entity_id=pr_id
        )
        body = parse_input(RequisitionUpdate, data, entity_type=EntityType.REQUISITION.value)

        async with self._locks.hold(pr_id):
            async with self.store.transaction() as tx:
                pr = await self._load_requisition(tx, pr_id, for_update=True)
                _check_version(EntityType.REQUISITION, pr_id, pr.version, expected_version)
                if pr.status != RequisitionStatus.DRAFT:
                    raise InvalidStateError(
                        "Only DRAFT requisitions can be edited",
                        entity_type=EntityType.REQUISITION.value,
                        entity_id=pr_id,
                        current_state=pr.status.value,
                        attempted="update",
                    )
                if pr.requester.id != user.id:
                    raise PermissionDeniedError(
                        "Only the requester can edit this requisition",
                        entity_type=EntityType.REQUISITION.value,
                        entity_id=pr_id,
                        attempted="update",
                    )

                changes = body.model_dump(exclude_unset=True, exclude={"line_items"})
                for field_name, value in changes.items():
                    if value is not None:
                        setattr(pr, field_name, value)
                if body.line_items is not None:
                    pr.line_items = _new_line_items(body.line_items)
                pr.updated_at = utcnow()
                pr = await self._save_requisition(tx, pr)

        logger.info("pr_updated", pr_id=pr_id, version=pr.version, total_amount=str(pr.total_amount))
        return pr

    async def submit_requisition(
        self, identity: Identity, pr_id: str, *, expected_version: Optional[int] = None
    ) -> PurchaseRequisition:
        identity.require(
            Permission.CREATE_PR, action="submit", entity_type=EntityType.REQUISITION.value, entity_id=pr_id
        )

        async with self._locks.hold(pr_id):
            async with self.store.transaction() as tx:
                pr = await self._load_requisition(tx, pr_id, for_update=True)
                _check_version(EntityType.REQUISITION, pr_id, pr.version, expected_version)
                _ensure_transition(
                    PR_TRANSITIONS, pr.status, RequisitionStatus.PENDING_APPROVAL,
                    entity_type=EntityType.REQUISITION, entity_id=pr_id, attempted="submit",
                )
                steps = await resolve_approvers(tx, pr.cost_center, pr.total_amount, self.settings)
                pr.approvers = build_approval_entries(steps)
                pr.status = RequisitionStatus.PENDING_APPROVAL
                pr.submitted_at = pr.updated_at = utcnow()
                pr = await self._save_requisition(tx, pr)

        logger.info(
            "pr_submitted",
            pr_id=pr_id,
            approvers=[a.approver_id for a in pr.approvers],
            total_amount=str(pr.total_amount),
        )
        await self._dispatch(
            _approval_requests(
                "pr_approval_request",
                pr.approvers,
                {
                    "pr_number": pr.pr_number,
                    "department": pr.department,
                    "amount": pr.total_amount,
                    "requester_email": pr.requester.email,
                },
            )
        )
        return pr

    async def decide_requisition(
        self,
        identity: Identity,
        pr_id: str,
        approver_id: str,
        decision: Union[ApprovalStatus, str],
        comment: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> PurchaseRequisition:
        user = identity.require(
            Permission.APPROVE_PR, action="decide", entity_type=EntityType.REQUISITION.value, entity_id=pr_id
        )
        decision = ApprovalStatus(decision)

        async with self._locks.hold(pr_id):
            async with self.store.transaction() as tx:
                pr = await self._load_requisition(tx, pr_id, for_update=True)
                _check_version(EntityType.REQUISITION, pr_id, pr.version, expected_version)
                if pr.status != RequisitionStatus.PENDING_APPROVAL:
                    raise InvalidStateError(
                        f"Cannot decide while in {pr.status.value} status",
                        entity_type=EntityType.REQUISITION.value,
                        entity_id=pr_id,
                        current_state=pr.status.value,
                        attempted="decide",
                    )
                if user.id != approver_id:
                    raise PermissionDeniedError(
                        "Approvers may only record their own decision",
                        entity_type=EntityType.REQUISITION.value,
                        entity_id=pr_id,
                        attempted="decide",
                    )
                result = apply_decision(
                    pr.approvers,
                    approver_id,
                    decision,
                    comment,
                    total_amount=pr.total_amount,
                    enforce_limits=self.settings.enforce_approval_limits,
                    entity_type=EntityType.REQUISITION.value,
                    entity_id=pr_id,
                )
                if result.is_rejected:
                    pr.status = RequisitionStatus.REJECTED
                elif result.is_final:
                    pr.status = RequisitionStatus.APPROVED
                pr.updated_at = utcnow()
                pr = await self._save_requisition(tx, pr)

        logger.info(
            "pr_decision_recorded",
            pr_id=pr_id,
            approver_id=approver_id,
            decision=decision.value,
            status=pr.status.value,
        )

        events: list[NotificationEvent] = []
        if pr.status == RequisitionStatus.REJECTED:
            events.append(
                NotificationEvent(
                    kind="pr_rejected",
                    recipient_email=pr.requester.email,
                    payload={
                        "pr_number": pr.pr_number,
                        "approver_name": result.entry.approver_name,
                        "comment": comment or "",
                    },
                )
            )
        elif pr.status == RequisitionStatus.APPROVED:
            events.append(
                NotificationEvent(
                    kind="pr_approved",
                    recipient_email=pr.requester.email,
                    payload={"pr_number": pr.pr_number, "amount": pr.total_amount},
                )
            )
        await self._dispatch([e for e in events if e.recipient_email])
        return pr

    async def convert_to_purchase_order(
        self,
        identity: Identity,
        pr_id: str,
        vendor_id: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> ConversionResult:
        """
        APPROVED PR -> new DRAFT PO. The PO insert and the PR status flip
        commit together or not at all.
        """
        identity.require(
            Permission.CREATE_PO, action="convert_to_po", entity_type=EntityType.REQUISITION.value, entity_id=pr_id
        )

        async def _convert() -> ConversionResult:
            async with self.store.transaction() as tx:
                pr = await self._load_requisition(tx, pr_id, for_update=True)
                _check_version(EntityType.REQUISITION, pr_id, pr.version, expected_version)
                _ensure_transition(
                    PR_TRANSITIONS, pr.status, RequisitionStatus.CONVERTED_TO_PO,
                    entity_type=EntityType.REQUISITION, entity_id=pr_id, attempted="convert_to_po",
                )
                vendor = await select_vendor(tx, pr, self.vendor_selector, vendor_id)

                now = utcnow()
                po = PurchaseOrder(
                    id=new_id(),
                    pr_id=pr.id,
                    po_number=await _next_number(tx, EntityType.PURCHASE_ORDER, PO_PREFIX),
                    vendor_id=vendor.id,
                    cost_center=pr.cost_center,
                    line_items=_copy_line_items(pr.line_items),
                    shipping_address=self.settings.DEFAULT_SHIPPING_ADDRESS,
                    billing_address=self.settings.DEFAULT_BILLING_ADDRESS,
                    currency=self.settings.DEFAULT_CURRENCY,
                    required_date=pr.date_needed,
                    status=PurchaseOrderStatus.DRAFT,
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
                po_row = await tx.create(EntityType.PURCHASE_ORDER, purchase_order_to_wire(po))

                pr.status = RequisitionStatus.CONVERTED_TO_PO
                pr.updated_at = now
                pr = await self._save_requisition(tx, pr)
            return ConversionResult(requisition=pr, purchase_order=purchase_order_from_wire(po_row))

        async with self._locks.hold(pr_id):
            result = await self._with_retry(_convert)

        po = result.purchase_order
        logger.info(
            "pr_converted_to_po",
            pr_id=pr_id,
            po_id=po.id,
            po_number=po.po_number,
            vendor_id=po.vendor_id,
            total_amount=str(po.total_amount),
        )
        pr = result.requisition
        if pr.requester.email:
            await self._dispatch(
                [
                    NotificationEvent(
                        kind="pr_converted",
                        recipient_email=pr.requester.email,
                        payload={"pr_number": pr.pr_number, "po_number": po.po_number},
                    )
                ]
            )
        return result

    async def get_requisition(self, pr_id: str) -> PurchaseRequisition:
        async with self.store.transaction() as tx:
            return await self._load_requisition(tx, pr_id)

    @staticmethod
    def _requisition_filters(status, requester_id, cost_center) -> dict:
        filters: dict = {}
        if status:
            filters["status"] = RequisitionStatus(status).value
        if requester_id:
            filters["requester_id"] = requester_id
        if cost_center:
            filters["cost_center"] = cost_center
        return filters

    async def list_requisitions(
        self,
        *,
        status: Optional[RequisitionStatus] = None,
        requester_id: Optional[str] = None,
        cost_center: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[PurchaseRequisition]:
        filters = self._requisition_filters(status, requester_id, cost_center)
        async with self.store.transaction() as tx:
            rows = await tx.list(EntityType.REQUISITION, filters, offset=offset, limit=limit)
        return [requisition_from_wire(r) for r in rows]

    async def count_requisitions(
        self,
        *,
        status: Optional[RequisitionStatus] = None,
        requester_id: Optional[str] = None,
        cost_center: Optional[str] = None,
    ) -> int:
        filters = self._requisition_filters(status, requester_id, cost_center)
        async with self.store.transaction() as tx:
            return await tx.count(EntityType.REQUISITION, filters)

    # ---------- purchase orders ----------

    async def create_purchase_order(
        self, identity: Identity, data: Union[PurchaseOrderCreate, dict]
    ) -> PurchaseOrder:
        identity.require(
            Permission.CREATE_PO, action="create", entity_type=EntityType.PURCHASE_ORDER.value
        )
        body = parse_input(PurchaseOrderCreate, data, entity_type=EntityType.PURCHASE_ORDER.value)

        now = utcnow()
        async with self.store.transaction() as tx:
            vendor = await require_active_vendor(tx, body.vendor_id)
            po = PurchaseOrder(
                id=new_id(),
                po_number=await _next_number(tx, EntityType.PURCHASE_ORDER, PO_PREFIX),
                vendor_id=vendor.id,
                cost_center=body.cost_center,
                line_items=_new_line_items(body.line_items),
                shipping_address=body.shipping_address or self.settings.DEFAULT_SHIPPING_ADDRESS,
                billing_address=body.billing_address or self.settings.DEFAULT_BILLING_ADDRESS,
                currency=(body.currency or self.settings.DEFAULT_CURRENCY).upper(),
                required_date=body.required_date,
                status=PurchaseOrderStatus.DRAFT,
                version=1,
                created_at=now,
                updated_at=now,
            )
            row = await tx.create(EntityType.PURCHASE_ORDER, purchase_order_to_wire(po))
        po = purchase_order_from_wire(row)

        logger.info(
            "po_created",
            po_id=po.id,
            po_number=po.po_number,
            vendor_id=po.vendor_id,
            total_amount=str(po.total_amount),
        )
        return po

    async def update_purchase_order(
        self,
        identity: Identity,
        po_id: str,
        data: Union[PurchaseOrderUpdate, dict],
        *,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        identity.require(
            Permission.CREATE_PO, action="update", entity_type=EntityType.PURCHASE_ORDER.value, entity_id=po_id
        )
        body = parse_input(PurchaseOrderUpdate, data, entity_type=EntityType.PURCHASE_ORDER.value)

        async with self._locks.hold(po_id):
            async with self.store.transaction() as tx:
                po = await self._load_purchase_order(tx, po_id, for_update=True)
                _check_version(EntityType.PURCHASE_ORDER, po_id, po.version, expected_version)
                if po.status != PurchaseOrderStatus.DRAFT:
                    raise InvalidStateError(
                        "Only DRAFT purchase orders can be edited",
                        entity_type=EntityType.PURCHASE_ORDER.value,
                        entity_id=po_id,
                        current_state=po.status.value,
                        attempted="update",
                    )
                if body.vendor_id is not None and body.vendor_id != po.vendor_id:
                    await require_active_vendor(tx, body.vendor_id)

                changes = body.model_dump(exclude_unset=True, exclude={"line_items"})
                for field_name, value in changes.items():
                    if value is not None:
                        setattr(po, field_name, value.upper() if field_name == "currency" else value)
                if body.line_items is not None:
                    po.line_items = _new_line_items(body.line_items)
                po.updated_at = utcnow()
                po = await self._save_purchase_order(tx, po)

        logger.info("po_updated", po_id=po_id, version=po.version, total_amount=str(po.total_amount))
        return po

    async def submit_purchase_order(
        self, identity: Identity, po_id: str, *, expected_version: Optional[int] = None
    ) -> PurchaseOrder:
        identity.require(
            Permission.CREATE_PO, action="submit", entity_type=EntityType.PURCHASE_ORDER.value, entity_id=po_id
        )

        async with self._locks.hold(po_id):
            async with self.store.transaction() as tx:
                po = await self._load_purchase_order(tx, po_id, for_update=True)
                _check_version(EntityType.PURCHASE_ORDER, po_id, po.version, expected_version)
                _ensure_transition(
                    PO_TRANSITIONS, po.status, PurchaseOrderStatus.PENDING_APPROVAL,
                    entity_type=EntityType.PURCHASE_ORDER, entity_id=po_id, attempted="submit",
                )
                steps = await resolve_approvers(tx, po.cost_center, po.total_amount, self.settings)
                po.approvers = build_approval_entries(steps)
                po.status = PurchaseOrderStatus.PENDING_APPROVAL
                po.updated_at = utcnow()
                po = await self._save_purchase_order(tx, po)

        logger.info(
            "po_submitted",
            po_id=po_id,
            approvers=[a.approver_id for a in po.approvers],
            total_amount=str(po.total_amount),
        )
        await self._dispatch(
            _approval_requests(
                "po_approval_request",
                po.approvers,
                {"po_number": po.po_number, "currency": po.currency, "amount": po.total_amount},
            )
        )
        return po

    async def decide_purchase_order(
        self,
        identity: Identity,
        po_id: str,
        approver_id: str,
        decision: Union[ApprovalStatus, str],
        comment: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        user = identity.require(
            Permission.APPROVE_PO, action="decide", entity_type=EntityType.PURCHASE_ORDER.value, entity_id=po_id
        )
        decision = ApprovalStatus(decision)

        async with self._locks.hold(po_id):
            async with self.store.transaction() as tx:
                po = await self._load_purchase_order(tx, po_id, for_update=True)
                _check_version(EntityType.PURCHASE_ORDER, po_id, po.version, expected_version)
                if po.status != PurchaseOrderStatus.PENDING_APPROVAL:
                    raise InvalidStateError(
                        f"Cannot decide while in {po.status.value} status",
                        entity_type=EntityType.PURCHASE_ORDER.value,
                        entity_id=po_id,
                        current_state=po.status.value,
                        attempted="decide",
                    )
                if user.id != approver_id:
                    raise PermissionDeniedError(
                        "Approvers may only record their own decision",
                        entity_type=EntityType.PURCHASE_ORDER.value,
                        entity_id=po_id,
                        attempted="decide",
                    )
                result = apply_decision(
                    po.approvers,
                    approver_id,
                    decision,
                    comment,
                    total_amount=po.total_amount,
                    enforce_limits=self.settings.enforce_approval_limits,
                    entity_type=EntityType.PURCHASE_ORDER.value,
                    entity_id=po_id,
                )
                if result.is_rejected:
                    po.status = PurchaseOrderStatus.REJECTED
                elif result.is_final:
                    po.status = PurchaseOrderStatus.APPROVED
                po.updated_at = utcnow()
                po = await self._save_purchase_order(tx, po)
                requester = (
                    await self._source_requester(tx, po)
                    if po.status != PurchaseOrderStatus.PENDING_APPROVAL
                    else None
                )

        logger.info(
            "po_decision_recorded",
            po_id=po_id,
            approver_id=approver_id,
            decision=decision.value,
            status=po.status.value,
        )

        if requester is not None and requester.email:
            if po.status == PurchaseOrderStatus.REJECTED:
                event = NotificationEvent(
                    kind="po_rejected",
                    recipient_email=requester.email,
                    payload={
                        "po_number": po.po_number,
                        "approver_name": result.entry.approver_name,
                        "comment": comment or "",
                    },
                )
            else:
                event = NotificationEvent(
                    kind="po_approved",
                    recipient_email=requester.email,
                    payload={"po_number": po.po_number},
                )
            await self._dispatch([event])
        return po

    async def send_to_vendor(
        self, identity: Identity, po_id: str, *, expected_version: Optional[int] = None
    ) -> PurchaseOrder:
        identity.require(
            Permission.APPROVE_PO, action="send_to_vendor", entity_type=EntityType.PURCHASE_ORDER.value, entity_id=po_id
        )

        async with self._locks.hold(po_id):
            async with self.store.transaction() as tx:
                po = await self._load_purchase_order(tx, po_id, for_update=True)
                _check_version(EntityType.PURCHASE_ORDER, po_id, po.version, expected_version)
                _ensure_transition(
                    PO_TRANSITIONS, po.status, PurchaseOrderStatus.SENT_TO_VENDOR,
                    entity_type=EntityType.PURCHASE_ORDER, entity_id=po_id, attempted="send_to_vendor",
                )
                vendor = await load_vendor(tx, po.vendor_id)
                po.status = PurchaseOrderStatus.SENT_TO_VENDOR
                po.sent_at = po.updated_at = utcnow()
                po = await self._save_purchase_order(tx, po)

        logger.info("po_sent_to_vendor", po_id=po_id, vendor_id=vendor.id, vendor_email=vendor.email)
        await self._dispatch(
            [
                NotificationEvent(
                    kind="po_sent",
                    recipient_email=vendor.email,
                    payload={
                        "po_number": po.po_number,
                        "vendor_name": vendor.name,
                        "currency": po.currency,
                        "amount": po.total_amount,
                        "required_date": po.required_date.isoformat() if po.required_date else "-",
                        "shipping_address": po.shipping_address,
                    },
                )
            ]
        )
        return po

    async def get_purchase_order(self, po_id: str) -> PurchaseOrder:
        async with self.store.transaction() as tx:
            return await self._load_purchase_order(tx, po_id)

    @staticmethod
    def _purchase_order_filters(status, vendor_id, pr_id) -> dict:
        filters: dict = {}
        if status:
            filters["status"] = PurchaseOrderStatus(status).value
        if vendor_id:
            filters["vendor_id"] = vendor_id
        if pr_id:
            filters["pr_id"] = pr_id
        return filters

    async def list_purchase_orders(
        self,
        *,
        status: Optional[PurchaseOrderStatus] = None,
        vendor_id: Optional[str] = None,
        pr_id: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[PurchaseOrder]:
        filters = self._purchase_order_filters(status, vendor_id, pr_id)
        async with self.store.transaction() as tx:
            rows = await tx.list(EntityType.PURCHASE_ORDER, filters, offset=offset, limit=limit)
        return [purchase_order_from_wire(r) for r in rows]

    async def count_purchase_orders(
        self,
        *,
        status: Optional[PurchaseOrderStatus] = None,
        vendor_id: Optional[str] = None,
        pr_id: Optional[str] = None,
    ) -> int:
        filters = self._purchase_order_filters(status, vendor_id, pr_id)
        async with self.store.transaction() as tx:
            return await tx.count(EntityType.PURCHASE_ORDER, filters)

    # ---------- goods receipts ----------

    def _settle(self, po: PurchaseOrder, receipts: list[GoodsReceipt]) -> bool:
        """Move ``po`` to COMPLETED or PARTIALLY_FULFILLED from all its receipts."""
        totals = fulfillment_service.received_totals(receipts)
        complete = fulfillment_service.is_fully_received(po, totals)
        target = PurchaseOrderStatus.COMPLETED if complete else PurchaseOrderStatus.PARTIALLY_FULFILLED
        _ensure_transition(
            PO_TRANSITIONS, po.status, target,
            entity_type=EntityType.PURCHASE_ORDER, entity_id=po.id, attempted="record_receipt",
        )
        po.status = target
        po.updated_at = utcnow()
        return complete

    async def record_receipt(
        self,
        identity: Identity,
        data: Union[ReceiptCreate, dict],
        *,
        expected_version: Optional[int] = None,
    ) -> ReceiptResult:
        """
        Record a delivery against a sent PO. ``expected_version`` refers to
        the purchase order. Receipt insert and PO update share a transaction.
        """
        user = identity.require(
            Permission.RECEIVE_GOODS, action="record_receipt", entity_type=EntityType.GOODS_RECEIPT.value
        )
        body = parse_input(ReceiptCreate, data, entity_type=EntityType.GOODS_RECEIPT.value)

        async def _record() -> ReceiptResult:
            async with self.store.transaction() as tx:
                po = await self._load_purchase_order(tx, body.po_id, for_update=True)
                _check_version(EntityType.PURCHASE_ORDER, po.id, po.version, expected_version)
                if po.status not in RECEIVABLE_PO_STATUSES:
                    raise InvalidStateError(
                        f"Cannot receive goods for a purchase order in {po.status.value} status",
                        entity_type=EntityType.PURCHASE_ORDER.value,
                        entity_id=po.id,
                        current_state=po.status.value,
                        attempted="record_receipt",
                    )

                receipts = await self._load_receipts(tx, po.id)
                lines = fulfillment_service.build_receipt_lines(
                    po, body.line_items, fulfillment_service.received_totals(receipts)
                )
                now = utcnow()
                receipt = GoodsReceipt(
                    id=new_id(),
                    receipt_number=await _next_number(tx, EntityType.GOODS_RECEIPT, RECEIPT_PREFIX),
                    po_id=po.id,
                    po_number=po.po_number,
                    received_by=ReceiverRef(id=user.id, name=user.name),
                    received_at=now,
                    line_items=lines,
                    delivery_note=body.delivery_note,
                    carrier=body.carrier,
                    status=ReceiptStatus.PARTIAL,
                    created_at=now,
                    updated_at=now,
                )
                if self._settle(po, receipts + [receipt]):
                    receipt.status = ReceiptStatus.COMPLETED
                receipt_row = await tx.create(EntityType.GOODS_RECEIPT, receipt_to_wire(receipt))
                po = await self._save_purchase_order(tx, po)
            return ReceiptResult(purchase_order=po, receipt=receipt_from_wire(receipt_row))

        async with self._locks.hold(body.po_id):
            result = await self._with_retry(_record)

        logger.info(
            "goods_receipt_recorded",
            receipt_id=result.receipt.id,
            receipt_number=result.receipt.receipt_number,
            po_id=result.purchase_order.id,
            po_status=result.purchase_order.status.value,
        )
        return result

    async def amend_receipt(
        self,
        identity: Identity,
        receipt_id: str,
        data: Union[ReceiptAmend, dict],
    ) -> ReceiptResult:
        """Correct or append fulfillment lines, then re-settle the PO."""
        identity.require(
            Permission.RECEIVE_GOODS, action="amend_receipt",
            entity_type=EntityType.GOODS_RECEIPT.value, entity_id=receipt_id,
        )
        body = parse_input(ReceiptAmend, data, entity_type=EntityType.GOODS_RECEIPT.value)
        po_id = (await self.get_receipt(receipt_id)).po_id

        async def _amend() -> ReceiptResult:
            async with self.store.transaction() as tx:
                row = await tx.get(EntityType.GOODS_RECEIPT, receipt_id, for_update=True)
                if row is None:
                    raise NotFoundError(
                        "Goods receipt not found",
                        entity_type=EntityType.GOODS_RECEIPT.value,
                        entity_id=receipt_id,
                    )
                receipt = receipt_from_wire(row)
                po = await self._load_purchase_order(tx, receipt.po_id, for_update=True)
                if po.status not in RECEIVABLE_PO_STATUSES:
                    raise InvalidStateError(
                        f"Cannot amend receipts of a purchase order in {po.status.value} status",
                        entity_type=EntityType.GOODS_RECEIPT.value,
                        entity_id=receipt_id,
                        current_state=po.status.value,
                        attempted="amend_receipt",
                    )
                fulfillment_service.check_fulfillments(po, body.line_items)

                sibling_rows = [
                    r for r in await tx.list(EntityType.GOODS_RECEIPT, {"po_id": po.id})
                    if r["id"] != receipt_id
                ]
                others = [receipt_from_wire(r) for r in sibling_rows]
                merged = fulfillment_service.merge_fulfillments(receipt.line_items, body.line_items)
                receipt.line_items = fulfillment_service.build_receipt_lines(
                    po, merged, fulfillment_service.received_totals(others)
                )
                now = utcnow()
                receipt.updated_at = now
                # Later deliveries were stamped against the old quantities.
                restamped = fulfillment_service.restamp_receipts(po, others + [receipt])
                self._settle(po, others + [receipt])

                receipt_row = await tx.update(
                    EntityType.GOODS_RECEIPT,
                    receipt_id,
                    receipt_to_wire(receipt),
                    expected_version=row.get("version"),
                )
                versions = {r["id"]: r.get("version") for r in sibling_rows}
                for other in restamped:
                    if other.id == receipt_id:
                        continue
                    other.updated_at = now
                    await tx.update(
                        EntityType.GOODS_RECEIPT,
                        other.id,
                        receipt_to_wire(other),
                        expected_version=versions[other.id],
                    )
                po = await self._save_purchase_order(tx, po)
            return ReceiptResult(purchase_order=po, receipt=receipt_from_wire(receipt_row))

        async with self._locks.hold(po_id):
            result = await self._with_retry(_amend)

        logger.info(
            "goods_receipt_amended",
            receipt_id=receipt_id,
            po_id=po_id,
            po_status=result.purchase_order.status.value,
        )
        return result

    async def get_receipt(self, receipt_id: str) -> GoodsReceipt:
        async with self.store.transaction() as tx:
            row = await tx.get(EntityType.GOODS_RECEIPT, receipt_id)
        if row is None:
            raise NotFoundError(
                "Goods receipt not found",
                entity_type=EntityType.GOODS_RECEIPT.value,
                entity_id=receipt_id,
            )
        return receipt_from_wire(row)

    async def list_receipts(
        self,
        *,
        po_id: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[GoodsReceipt]:
        filters = {"po_id": po_id} if po_id else None
        async with self.store.transaction() as tx:
            rows = await tx.list(EntityType.GOODS_RECEIPT, filters, offset=offset, limit=limit)
        return [receipt_from_wire(r) for r in rows]

    async def count_receipts(self, *, po_id: Optional[str] = None) -> int:
        filters = {"po_id": po_id} if po_id else None
        async with self.store.transaction() as tx:
            return await tx.count(EntityType.GOODS_RECEIPT, filters)

    # ---------- reporting ----------

    async def status_summary(self, identity: Identity) -> StatusSummary:
        """Counts per requisition and purchase-order status, for dashboards."""
        identity.require(Permission.VIEW_REPORTS, action="status_summary")
        async with self.store.transaction() as tx:
            requisitions = {
                s.value: await tx.count(EntityType.REQUISITION, {"status": s.value})
                for s in RequisitionStatus
            }
            purchase_orders = {
                s.value: await tx.count(EntityType.PURCHASE_ORDER, {"status": s.value})
                for s in PurchaseOrderStatus
            }
        return StatusSummary(
            requisitions=requisitions,
            purchase_orders=purchase_orders,
            pending_approvals=(
                requisitions[RequisitionStatus.PENDING_APPROVAL.value]
                + purchase_orders[PurchaseOrderStatus.PENDING_APPROVAL.value]
            ),
            awaiting_receipt=sum(purchase_orders[s.value] for s in RECEIVABLE_PO_STATUSES),
        )
