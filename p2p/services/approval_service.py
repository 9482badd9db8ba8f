"""
Approval service: approver resolution, decision processing, approver bindings.

Approvers come from cost-center bindings. Every binding for the cost center
must approve (any order); a single rejection vetoes the entity. Each binding
carries a dollar limit. Under the default ``advisory`` policy the limit is
only reported (``exceeds_limit``); under ``enforced`` an approver may not
approve an amount above their limit, though they may still reject it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

import structlog

from p2p.config import Settings
from p2p.errors import (
    ApprovalLimitExceededError,
    ApproverNotFoundError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from p2p.schemas.approver import (
    CostCenterApprover,
    CostCenterApproverCreate,
    CostCenterApproverUpdate,
)
from p2p.schemas.common import ApprovalEntry, new_id, parse_input, utcnow
from p2p.schemas.status import ApprovalStatus
from p2p.services.cost_center_service import load_cost_center
from p2p.services.identity import Identity, Permission
from p2p.services.mappers import approver_binding_from_wire, approver_binding_to_wire
from p2p.services.store import EntityStore, EntityType, StoreTransaction

logger = structlog.get_logger()


@dataclass
class ApprovalStep:
    id: str
    name: str
    email: str
    approval_limit: Optional[Decimal] = None
    exceeds_limit: bool = False


@dataclass
class ApprovalResult:
    is_final: bool
    is_rejected: bool
    entry: ApprovalEntry


async def resolve_approvers(
    tx: StoreTransaction,
    cost_center: Optional[str],
    total_amount: Decimal,
    settings: Settings,
) -> list[ApprovalStep]:
    """Approvers bound to ``cost_center``, lowest limit first; the configured
    default approver when nobody is bound."""
    bindings: list[CostCenterApprover] = []
    if cost_center:
        rows = await tx.list(EntityType.COST_CENTER_APPROVER, {"cost_center": cost_center})
        bindings = [approver_binding_from_wire(r) for r in rows]

    if not bindings:
        logger.info("approval_fallback_approver", cost_center=cost_center)
        return [
            ApprovalStep(
                id=settings.DEFAULT_APPROVER_ID,
                name=settings.DEFAULT_APPROVER_NAME,
                email=settings.DEFAULT_APPROVER_EMAIL,
            )
        ]

    steps: list[ApprovalStep] = []
    seen: set[str] = set()
    for b in sorted(bindings, key=lambda b: (b.approval_limit, b.user_name)):
        if b.user_id in seen:
            continue
        seen.add(b.user_id)
        exceeds = total_amount > b.approval_limit
        if exceeds:
            logger.warning(
                "approval_limit_exceeded",
                cost_center=cost_center,
                approver_id=b.user_id,
                approval_limit=str(b.approval_limit),
                total_amount=str(total_amount),
                policy=settings.APPROVAL_LIMIT_POLICY,
            )
        steps.append(
            ApprovalStep(
                id=b.user_id,
                name=b.user_name,
                email=b.user_email,
                approval_limit=b.approval_limit,
                exceeds_limit=exceeds,
            )
        )
    return steps


def build_approval_entries(steps: list[ApprovalStep]) -> list[ApprovalEntry]:
    return [
        ApprovalEntry(
            approver_id=s.id,
            approver_name=s.name,
            approver_email=s.email,
            approval_limit=s.approval_limit,
        )
        for s in steps
    ]


def apply_decision(
    approvers: list[ApprovalEntry],
    approver_id: str,
    decision: ApprovalStatus,
    comment: Optional[str],
    *,
    total_amount: Decimal,
    enforce_limits: bool,
    entity_type: str,
    entity_id: str,
) -> ApprovalResult:
    """
    Record one approver's decision on ``approvers`` (mutated in place).

    Returns is_rejected=True on a veto, is_final=True once the entity's
    outcome is settled (rejected, or every entry approved).
    """
    if decision == ApprovalStatus.PENDING:
        raise ValidationError(
            "Decision must be APPROVED or REJECTED",
            entity_type=entity_type,
            entity_id=entity_id,
            attempted="decide",
        )

    entry = next((a for a in approvers if a.approver_id == approver_id), None)
    if entry is None:
        raise ApproverNotFoundError(
            f"Approver '{approver_id}' is not assigned to this {entity_type}",
            entity_type=entity_type,
            entity_id=entity_id,
            attempted="decide",
        )

    if entry.status != ApprovalStatus.PENDING:
        raise InvalidStateError(
            f"Approver '{approver_id}' has already decided",
            entity_type=entity_type,
            entity_id=entity_id,
            current_state=entry.status.value,
            attempted="decide",
        )

    if (
        decision == ApprovalStatus.APPROVED
        and enforce_limits
        and entry.approval_limit is not None
        and total_amount > entry.approval_limit
    ):
        raise ApprovalLimitExceededError(
            f"Amount {total_amount} exceeds approval limit {entry.approval_limit}",
            entity_type=entity_type,
            entity_id=entity_id,
            attempted="approve",
        )

    entry.status = decision
    entry.comment = comment
    entry.decided_at = utcnow()

    if decision == ApprovalStatus.REJECTED:
        return ApprovalResult(is_final=True, is_rejected=True, entry=entry)

    all_approved = all(a.status == ApprovalStatus.APPROVED for a in approvers)
    return ApprovalResult(is_final=all_approved, is_rejected=False, entry=entry)


# ---------- cost-center approver bindings ----------


async def _ensure_unique_binding(
    tx: StoreTransaction, user_id: str, cost_center: str, exclude_id: Optional[str] = None
) -> None:
    rows = await tx.list(
        EntityType.COST_CENTER_APPROVER,
        {"user_id": user_id, "cost_center": cost_center},
    )
    if any(r["id"] != exclude_id for r in rows):
        raise ConflictError(
            "This user is already an approver for this cost center",
            entity_type=EntityType.COST_CENTER_APPROVER.value,
            attempted="bind_approver",
        )


async def list_bindings(
    store: EntityStore, cost_center: Optional[str] = None
) -> list[CostCenterApprover]:
    filters = {"cost_center": cost_center} if cost_center else None
    async with store.transaction() as tx:
        rows = await tx.list(EntityType.COST_CENTER_APPROVER, filters)
    return [approver_binding_from_wire(r) for r in rows]


async def create_binding(
    store: EntityStore,
    identity: Identity,
    data: Union[CostCenterApproverCreate, dict],
) -> CostCenterApprover:
    identity.require(Permission.MANAGE_USERS, action="bind_approver")
    body = parse_input(CostCenterApproverCreate, data, entity_type=EntityType.COST_CENTER_APPROVER.value)

    binding = CostCenterApprover(
        id=new_id(),
        user_id=body.user_id,
        user_name=body.user_name,
        user_email=body.user_email,
        cost_center=body.cost_center,
        approval_limit=body.approval_limit,
        created_at=utcnow(),
    )
    async with store.transaction() as tx:
        await load_cost_center(tx, binding.cost_center)
        await _ensure_unique_binding(tx, binding.user_id, binding.cost_center)
        await tx.create(EntityType.COST_CENTER_APPROVER, approver_binding_to_wire(binding))

    logger.info(
        "approver_bound",
        binding_id=binding.id,
        user_id=binding.user_id,
        cost_center=binding.cost_center,
    )
    return binding


async def update_binding(
    store: EntityStore,
    identity: Identity,
    binding_id: str,
    data: Union[CostCenterApproverUpdate, dict],
) -> CostCenterApprover:
    identity.require(Permission.MANAGE_USERS, action="update_approver_binding")
    body = parse_input(CostCenterApproverUpdate, data, entity_type=EntityType.COST_CENTER_APPROVER.value)

    async with store.transaction() as tx:
        row = await tx.get(EntityType.COST_CENTER_APPROVER, binding_id, for_update=True)
        if row is None:
            raise NotFoundError(
                "Approver binding not found",
                entity_type=EntityType.COST_CENTER_APPROVER.value,
                entity_id=binding_id,
            )
        binding = approver_binding_from_wire(row)
        if body.cost_center is not None:
            await load_cost_center(tx, body.cost_center)
            binding.cost_center = body.cost_center
        if body.approval_limit is not None:
            binding.approval_limit = body.approval_limit
        await _ensure_unique_binding(tx, binding.user_id, binding.cost_center, exclude_id=binding_id)
        await tx.update(
            EntityType.COST_CENTER_APPROVER,
            binding_id,
            approver_binding_to_wire(binding),
            expected_version=row.get("version"),
        )

    logger.info("approver_binding_updated", binding_id=binding_id)
    return binding


async def delete_binding(store: EntityStore, identity: Identity, binding_id: str) -> None:
    identity.require(Permission.MANAGE_USERS, action="delete_approver_binding")
    async with store.transaction() as tx:
        await tx.delete(EntityType.COST_CENTER_APPROVER, binding_id)
    logger.info("approver_binding_deleted", binding_id=binding_id)


async def preview_approvers(
    store: EntityStore,
    cost_center: Optional[str],
    total_amount: Decimal,
    settings: Settings,
) -> list[ApprovalStep]:
    """Read-only resolution, for showing the approval route before submit."""
    async with store.transaction() as tx:
        return await resolve_approvers(tx, cost_center, total_amount, settings)
