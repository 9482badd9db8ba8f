"""
Unit tests for p2p/services/fulfillment_service.py

Tests the receipt reconciliation rules:
  - line classification on cumulative quantity (PARTIAL / COMPLETE / EXCESS)
  - DAMAGED lines never count toward fulfillment
  - unknown or repeated line ids are rejected
  - amendment merging replaces by line id
  - restamping judges each receipt on deliveries up to and including it
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from p2p.errors import ValidationError
from p2p.schemas.common import LineItem
from p2p.schemas.purchase_order import PurchaseOrder
from p2p.schemas.receipt import GoodsReceipt, GoodsReceiptLine, LineFulfillment, ReceiverRef
from p2p.schemas.status import ReceiptLineStatus, ReceiptStatus
from p2p.services.fulfillment_service import (
    build_receipt_lines,
    check_fulfillments,
    classify_line,
    is_fully_received,
    merge_fulfillments,
    received_totals,
    restamp_receipts,
)

NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _po(*quantities) -> PurchaseOrder:
    return PurchaseOrder(
        id="po-1",
        po_number="PO-000001",
        vendor_id="v-1",
        line_items=[
            LineItem(id=f"l{i + 1}", description=f"Item {i + 1}", quantity=q, unit_price=Decimal("2.50"))
            for i, q in enumerate(quantities)
        ],
        created_at=NOW,
        updated_at=NOW,
    )


def _receipt(receipt_id, *lines) -> GoodsReceipt:
    return GoodsReceipt(
        id=receipt_id,
        receipt_number=f"GR-{receipt_id}",
        po_id="po-1",
        po_number="PO-000001",
        received_by=ReceiverRef(id="u-wh", name="Walt"),
        received_at=NOW,
        line_items=[
            GoodsReceiptLine(
                line_item_id=line_id,
                description="x",
                quantity_ordered=10,
                quantity_received=qty,
                status=status,
            )
            for line_id, qty, status in lines
        ],
        status=ReceiptStatus.PARTIAL,
        created_at=NOW,
        updated_at=NOW,
    )


# ---------------------------------------------------------------------------
# classify_line
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "ordered,cumulative,expected",
    [
        (10, 6, ReceiptLineStatus.PARTIAL),
        (10, 10, ReceiptLineStatus.COMPLETE),
        (10, 12, ReceiptLineStatus.EXCESS),
    ],
)
def test_classify_line(ordered, cumulative, expected):
    assert classify_line(ordered, cumulative) == expected


def test_classify_damaged_wins():
    assert classify_line(10, 10, damaged=True) == ReceiptLineStatus.DAMAGED


# ---------------------------------------------------------------------------
# received_totals
# ---------------------------------------------------------------------------


def test_totals_sum_across_receipts_and_skip_damaged():
    receipts = [
        _receipt("r1", ("l1", 4, ReceiptLineStatus.PARTIAL), ("l2", 3, ReceiptLineStatus.DAMAGED)),
        _receipt("r2", ("l1", 5, ReceiptLineStatus.PARTIAL)),
    ]
    assert received_totals(receipts) == {"l1": 9}


def test_totals_can_exclude_a_receipt():
    receipts = [
        _receipt("r1", ("l1", 4, ReceiptLineStatus.PARTIAL)),
        _receipt("r2", ("l1", 5, ReceiptLineStatus.PARTIAL)),
    ]
    assert received_totals(receipts, exclude_receipt_id="r2") == {"l1": 4}


# ---------------------------------------------------------------------------
# build_receipt_lines / check_fulfillments
# ---------------------------------------------------------------------------


def test_lines_follow_po_order_and_prior_totals():
    po = _po(10, 4)
    fulfillments = [
        LineFulfillment(line_item_id="l2", quantity_received=4),
        LineFulfillment(line_item_id="l1", quantity_received=3, notes="box dented"),
    ]

    lines = build_receipt_lines(po, fulfillments, {"l1": 7})

    assert [line.line_item_id for line in lines] == ["l1", "l2"]
    assert lines[0].status == ReceiptLineStatus.COMPLETE
    assert lines[0].quantity_received == 3
    assert lines[0].notes == "box dented"
    assert lines[1].status == ReceiptLineStatus.COMPLETE
    assert lines[1].quantity_ordered == 4


def test_damaged_line_does_not_add_to_cumulative():
    po = _po(10)
    lines = build_receipt_lines(
        po, [LineFulfillment(line_item_id="l1", quantity_received=10, damaged=True)], {}
    )
    assert lines[0].status == ReceiptLineStatus.DAMAGED


def test_unknown_line_rejected():
    with pytest.raises(ValidationError) as exc:
        check_fulfillments(_po(10), [LineFulfillment(line_item_id="nope", quantity_received=1)])
    assert exc.value.entity_id == "po-1"


def test_repeated_line_rejected():
    with pytest.raises(ValidationError):
        check_fulfillments(
            _po(10),
            [
                LineFulfillment(line_item_id="l1", quantity_received=1),
                LineFulfillment(line_item_id="l1", quantity_received=1),
            ],
        )


# ---------------------------------------------------------------------------
# merge_fulfillments / is_fully_received
# ---------------------------------------------------------------------------


def test_merge_replaces_and_appends():
    existing = _receipt(
        "r1", ("l1", 4, ReceiptLineStatus.PARTIAL), ("l2", 2, ReceiptLineStatus.DAMAGED)
    ).line_items

    merged = merge_fulfillments(existing, [LineFulfillment(line_item_id="l1", quantity_received=6),
                                           LineFulfillment(line_item_id="l3", quantity_received=1)])

    by_id = {f.line_item_id: f for f in merged}
    assert by_id["l1"].quantity_received == 6
    assert by_id["l2"].damaged is True
    assert by_id["l3"].quantity_received == 1


def test_fully_received():
    po = _po(10, 4)
    assert is_fully_received(po, {"l1": 10, "l2": 5})
    assert not is_fully_received(po, {"l1": 10})


# ---------------------------------------------------------------------------
# restamp_receipts
# ---------------------------------------------------------------------------


def test_restamp_walks_receipts_in_delivery_order():
    po = _po(10)
    early = _receipt("r1", ("l1", 3, ReceiptLineStatus.COMPLETE))
    late = _receipt("r2", ("l1", 4, ReceiptLineStatus.COMPLETE))
    late.status = ReceiptStatus.COMPLETED

    changed = restamp_receipts(po, [late, early])

    assert early.line_items[0].status == ReceiptLineStatus.PARTIAL
    assert late.line_items[0].status == ReceiptLineStatus.PARTIAL
    assert late.status == ReceiptStatus.PARTIAL
    assert {r.id for r in changed} == {"r1", "r2"}


def test_restamp_skips_damaged_and_reports_only_changes():
    po = _po(10)
    damaged = _receipt("r1", ("l1", 10, ReceiptLineStatus.DAMAGED))
    good = _receipt("r2", ("l1", 10, ReceiptLineStatus.COMPLETE))
    good.status = ReceiptStatus.COMPLETED

    changed = restamp_receipts(po, [damaged, good])

    assert damaged.line_items[0].status == ReceiptLineStatus.DAMAGED
    assert good.line_items[0].status == ReceiptLineStatus.COMPLETE
    assert changed == []
