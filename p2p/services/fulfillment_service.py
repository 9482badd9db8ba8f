"""
Receipt reconciliation rules.

Pure functions over domain records; the workflow engine loads the purchase
order and its receipts, calls into here, and persists the result.

A line's status is judged on the cumulative quantity received across every
receipt for the order. Damaged goods are recorded but never count toward
fulfilling the line.
"""

from typing import Iterable, Optional

from p2p.errors import ValidationError
from p2p.schemas.purchase_order import PurchaseOrder
from p2p.schemas.receipt import GoodsReceipt, GoodsReceiptLine, LineFulfillment
from p2p.schemas.status import ReceiptLineStatus, ReceiptStatus


def received_totals(
    receipts: Iterable[GoodsReceipt], exclude_receipt_id: Optional[str] = None
) -> dict[str, int]:
    """Usable quantity received per PO line id."""
    totals: dict[str, int] = {}
    for receipt in receipts:
        if receipt.id == exclude_receipt_id:
            continue
        for line in receipt.line_items:
            if line.status == ReceiptLineStatus.DAMAGED:
                continue
            totals[line.line_item_id] = totals.get(line.line_item_id, 0) + line.quantity_received
    return totals


def classify_line(quantity_ordered: int, cumulative_received: int, damaged: bool = False) -> ReceiptLineStatus:
    if damaged:
        return ReceiptLineStatus.DAMAGED
    if cumulative_received > quantity_ordered:
        return ReceiptLineStatus.EXCESS
    if cumulative_received == quantity_ordered:
        return ReceiptLineStatus.COMPLETE
    return ReceiptLineStatus.PARTIAL


def check_fulfillments(po: PurchaseOrder, fulfillments: list[LineFulfillment]) -> None:
    known = {li.id for li in po.line_items}
    seen: set[str] = set()
    for f in fulfillments:
        if f.line_item_id not in known:
            raise ValidationError(
                f"Line item '{f.line_item_id}' not found on this purchase order",
                entity_type="purchase_orders",
                entity_id=po.id,
                attempted="record_receipt",
            )
        if f.line_item_id in seen:
            raise ValidationError(
                f"Line item '{f.line_item_id}' appears more than once",
                entity_type="purchase_orders",
                entity_id=po.id,
                attempted="record_receipt",
            )
        seen.add(f.line_item_id)


def build_receipt_lines(
    po: PurchaseOrder,
    fulfillments: list[LineFulfillment],
    prior_totals: dict[str, int],
) -> list[GoodsReceiptLine]:
    """
    Turn caller fulfillments into receipt lines, in PO line order for the
    lines present. ``prior_totals`` is what other receipts already delivered.
    """
    check_fulfillments(po, fulfillments)
    by_line = {f.line_item_id: f for f in fulfillments}

    lines: list[GoodsReceiptLine] = []
    for po_line in po.line_items:
        f = by_line.get(po_line.id)
        if f is None:
            continue
        cumulative = prior_totals.get(po_line.id, 0)
        if not f.damaged:
            cumulative += f.quantity_received
        lines.append(
            GoodsReceiptLine(
                line_item_id=po_line.id,
                description=po_line.description,
                quantity_ordered=po_line.quantity,
                quantity_received=f.quantity_received,
                status=classify_line(po_line.quantity, cumulative, f.damaged),
                notes=f.notes,
            )
        )
    return lines


def merge_fulfillments(
    existing: list[GoodsReceiptLine], corrections: list[LineFulfillment]
) -> list[LineFulfillment]:
    """Existing receipt lines with ``corrections`` replacing or appending per line id."""
    merged = {
        line.line_item_id: LineFulfillment(
            line_item_id=line.line_item_id,
            quantity_received=line.quantity_received,
            damaged=line.status == ReceiptLineStatus.DAMAGED,
            notes=line.notes,
        )
        for line in existing
    }
    for c in corrections:
        merged[c.line_item_id] = c
    return list(merged.values())


def is_fully_received(po: PurchaseOrder, totals: dict[str, int]) -> bool:
    return all(totals.get(li.id, 0) >= li.quantity for li in po.line_items)


def restamp_receipts(po: PurchaseOrder, receipts: list[GoodsReceipt]) -> list[GoodsReceipt]:
    """
    Recompute line and receipt statuses in delivery order, in place.

    Each line is judged on what had arrived up to and including its own
    receipt; a receipt is COMPLETED once the order is fully received by it.
    Returns the receipts whose statuses changed.
    """
    ordered = sorted(receipts, key=lambda r: (r.received_at, r.receipt_number))
    quantities = {li.id: li.quantity for li in po.line_items}
    totals: dict[str, int] = {}
    changed: list[GoodsReceipt] = []
    for receipt in ordered:
        before = (receipt.status, [line.status for line in receipt.line_items])
        for line in receipt.line_items:
            if line.status == ReceiptLineStatus.DAMAGED:
                continue
            totals[line.line_item_id] = totals.get(line.line_item_id, 0) + line.quantity_received
            ordered_qty = quantities.get(line.line_item_id, line.quantity_ordered)
            line.status = classify_line(ordered_qty, totals[line.line_item_id])
        receipt.status = (
            ReceiptStatus.COMPLETED if is_fully_received(po, totals) else ReceiptStatus.PARTIAL
        )
        if (receipt.status, [line.status for line in receipt.line_items]) != before:
            changed.append(receipt)
    return changed
