"""
Wire <-> domain mapping, defined once per entity.

Wire records are what the entity store holds: flat snake_case dicts of JSON
primitives (decimals and dates as strings), with child collections as lists
of such dicts. Domain records are the pydantic models in ``p2p.schemas``.
Derived values (line totals, order totals) are written to the wire for
readers of the raw tables but always recomputed on the way back in.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from p2p.schemas.approver import CostCenterApprover
from p2p.schemas.common import ApprovalEntry, LineItem, UserRef
from p2p.schemas.cost_center import CostCenter
from p2p.schemas.purchase_order import PurchaseOrder
from p2p.schemas.receipt import GoodsReceipt, GoodsReceiptLine, ReceiverRef
from p2p.schemas.requisition import PurchaseRequisition
from p2p.schemas.vendor import Vendor


def _iso(value: Optional[date | datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


# ---------- children ----------


def line_item_to_wire(li: LineItem) -> dict[str, Any]:
    return {
        "id": li.id,
        "description": li.description,
        "category": li.category,
        "quantity": li.quantity,
        "unit_price": _money(li.unit_price),
        "total_price": _money(li.total_price),
        "delivery_date": _iso(li.delivery_date),
        "notes": li.notes,
    }


def line_item_from_wire(row: dict) -> LineItem:
    return LineItem(
        id=row["id"],
        description=row["description"],
        category=row.get("category") or "",
        quantity=row["quantity"],
        unit_price=Decimal(str(row["unit_price"])),
        delivery_date=row.get("delivery_date"),
        notes=row.get("notes"),
    )


def approval_entry_to_wire(entry: ApprovalEntry) -> dict[str, Any]:
    return {
        "approver_id": entry.approver_id,
        "approver_name": entry.approver_name,
        "approver_email": entry.approver_email,
        "status": entry.status.value,
        "comment": entry.comment,
        "date": _iso(entry.decided_at),
        "approval_limit": _money(entry.approval_limit),
    }


def approval_entry_from_wire(row: dict) -> ApprovalEntry:
    return ApprovalEntry(
        approver_id=row["approver_id"],
        approver_name=row["approver_name"],
        approver_email=row["approver_email"],
        status=row.get("status") or "PENDING",
        comment=row.get("comment"),
        decided_at=row.get("date"),
        approval_limit=row.get("approval_limit"),
    )


# ---------- purchase requisitions ----------


def requisition_to_wire(pr: PurchaseRequisition) -> dict[str, Any]:
    return {
        "id": pr.id,
        "pr_number": pr.pr_number,
        "requester_id": pr.requester.id,
        "requester_name": pr.requester.name,
        "requester_email": pr.requester.email,
        "department": pr.department,
        "cost_center": pr.cost_center,
        "budget_code": pr.budget_code,
        "justification": pr.justification,
        "date_needed": _iso(pr.date_needed),
        "line_items": [line_item_to_wire(li) for li in pr.line_items],
        "approvers": [approval_entry_to_wire(a) for a in pr.approvers],
        "status": pr.status.value,
        "total_amount": _money(pr.total_amount),
        "version": pr.version,
        "date_created": _iso(pr.created_at),
        "updated_at": _iso(pr.updated_at),
        "submitted_at": _iso(pr.submitted_at),
    }


def requisition_from_wire(row: dict) -> PurchaseRequisition:
    return PurchaseRequisition(
        id=row["id"],
        pr_number=row["pr_number"],
        requester=UserRef(
            id=row["requester_id"],
            name=row["requester_name"],
            email=row.get("requester_email") or "",
        ),
        department=row["department"],
        cost_center=row["cost_center"],
        budget_code=row["budget_code"],
        justification=row["justification"],
        date_needed=row["date_needed"],
        line_items=[line_item_from_wire(li) for li in row.get("line_items") or []],
        approvers=[approval_entry_from_wire(a) for a in row.get("approvers") or []],
        status=row["status"],
        version=row["version"],
        created_at=row["date_created"],
        updated_at=row["updated_at"],
        submitted_at=row.get("submitted_at"),
    )


# ---------- purchase orders ----------


def purchase_order_to_wire(po: PurchaseOrder) -> dict[str, Any]:
    return {
        "id": po.id,
        "pr_id": po.pr_id,
        "po_number": po.po_number,
        "vendor_id": po.vendor_id,
        "cost_center": po.cost_center,
        "line_items": [line_item_to_wire(li) for li in po.line_items],
        "approvers": [approval_entry_to_wire(a) for a in po.approvers],
        "shipping_address": po.shipping_address,
        "billing_address": po.billing_address,
        "currency": po.currency,
        "required_date": _iso(po.required_date),
        "status": po.status.value,
        "total_amount": _money(po.total_amount),
        "version": po.version,
        "date_created": _iso(po.created_at),
        "updated_at": _iso(po.updated_at),
        "sent_at": _iso(po.sent_at),
    }


def purchase_order_from_wire(row: dict) -> PurchaseOrder:
    return PurchaseOrder(
        id=row["id"],
        pr_id=row.get("pr_id"),
        po_number=row["po_number"],
        vendor_id=row["vendor_id"],
        cost_center=row.get("cost_center"),
        line_items=[line_item_from_wire(li) for li in row.get("line_items") or []],
        approvers=[approval_entry_from_wire(a) for a in row.get("approvers") or []],
        shipping_address=row.get("shipping_address") or "",
        billing_address=row.get("billing_address") or "",
        currency=row.get("currency") or "USD",
        required_date=row.get("required_date"),
        status=row["status"],
        version=row["version"],
        created_at=row["date_created"],
        updated_at=row["updated_at"],
        sent_at=row.get("sent_at"),
    )


# ---------- goods receipts ----------


def receipt_line_to_wire(line: GoodsReceiptLine) -> dict[str, Any]:
    return {
        "line_item_id": line.line_item_id,
        "description": line.description,
        "quantity_ordered": line.quantity_ordered,
        "quantity_received": line.quantity_received,
        "status": line.status.value,
        "notes": line.notes,
    }


def receipt_line_from_wire(row: dict) -> GoodsReceiptLine:
    return GoodsReceiptLine(
        line_item_id=row["line_item_id"],
        description=row["description"],
        quantity_ordered=row["quantity_ordered"],
        quantity_received=row["quantity_received"],
        status=row["status"],
        notes=row.get("notes"),
    )


def receipt_to_wire(gr: GoodsReceipt) -> dict[str, Any]:
    return {
        "id": gr.id,
        "receipt_number": gr.receipt_number,
        "po_id": gr.po_id,
        "po_number": gr.po_number,
        "receiver_id": gr.received_by.id,
        "receiver_name": gr.received_by.name,
        "date_received": _iso(gr.received_at),
        "line_items": [receipt_line_to_wire(li) for li in gr.line_items],
        "delivery_note": gr.delivery_note,
        "carrier": gr.carrier,
        "status": gr.status.value,
        "created_at": _iso(gr.created_at),
        "updated_at": _iso(gr.updated_at),
    }


def receipt_from_wire(row: dict) -> GoodsReceipt:
    return GoodsReceipt(
        id=row["id"],
        receipt_number=row["receipt_number"],
        po_id=row["po_id"],
        po_number=row["po_number"],
        received_by=ReceiverRef(id=row["receiver_id"], name=row["receiver_name"]),
        received_at=row["date_received"],
        line_items=[receipt_line_from_wire(li) for li in row.get("line_items") or []],
        delivery_note=row.get("delivery_note"),
        carrier=row.get("carrier"),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ---------- vendors / cost centers / approver bindings ----------


def vendor_to_wire(v: Vendor) -> dict[str, Any]:
    return {
        "id": v.id,
        "name": v.name,
        "contact_person": v.contact_person,
        "email": v.email,
        "phone": v.phone,
        "address": v.address,
        "tax_id": v.tax_id,
        "payment_terms": v.payment_terms,
        "category": list(v.categories),
        "status": v.status.value,
        "created_at": _iso(v.created_at),
        "updated_at": _iso(v.updated_at),
    }


def vendor_from_wire(row: dict) -> Vendor:
    return Vendor(
        id=row["id"],
        name=row["name"],
        contact_person=row.get("contact_person") or "",
        email=row["email"],
        phone=row.get("phone") or "",
        address=row.get("address") or "",
        tax_id=row.get("tax_id") or "",
        payment_terms=row.get("payment_terms") or "",
        categories=row.get("category") or [],
        status=row.get("status") or "ACTIVE",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def cost_center_to_wire(cc: CostCenter) -> dict[str, Any]:
    return {
        "id": cc.id,
        "name": cc.name,
        "description": cc.description,
        "created_at": _iso(cc.created_at),
        "updated_at": _iso(cc.updated_at),
    }


def cost_center_from_wire(row: dict) -> CostCenter:
    return CostCenter(
        id=row["id"],
        name=row["name"],
        description=row.get("description") or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def approver_binding_to_wire(b: CostCenterApprover) -> dict[str, Any]:
    return {
        "id": b.id,
        "user_id": b.user_id,
        "user_name": b.user_name,
        "user_email": b.user_email,
        "cost_center": b.cost_center,
        "approval_limit": _money(b.approval_limit),
        "created_at": _iso(b.created_at),
    }


def approver_binding_from_wire(row: dict) -> CostCenterApprover:
    return CostCenterApprover(
        id=row["id"],
        user_id=row["user_id"],
        user_name=row["user_name"],
        user_email=row["user_email"],
        cost_center=row["cost_center"],
        approval_limit=Decimal(str(row["approval_limit"])),
        created_at=row["created_at"],
    )
