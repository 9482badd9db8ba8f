"""
Concurrent workflow operations against one engine and store.

Fires overlapping calls with asyncio.gather and checks that every write
lands exactly once: parallel approvals both count, a requisition converts
into a single purchase order, and parallel receipts accumulate.
"""

import asyncio

import pytest

from p2p.errors import InvalidStateError
from p2p.schemas.purchase_order import ConversionResult
from p2p.schemas.status import (
    ApprovalStatus,
    PurchaseOrderStatus,
    ReceiptLineStatus,
    RequisitionStatus,
)


async def _approved_pr(engine, requester, default_approver, pr_payload):
    pr = await engine.create_requisition(requester, pr_payload())
    await engine.submit_requisition(requester, pr.id)
    return await engine.decide_requisition(
        default_approver, pr.id, default_approver.current_user().id, ApprovalStatus.APPROVED
    )


@pytest.mark.asyncio
async def test_parallel_approvals_both_count(engine, requester, notifier, bind, approver_a, approver_b, pr_payload):
    await bind(approver_a)
    await bind(approver_b)
    pr = await engine.create_requisition(requester, pr_payload())
    await engine.submit_requisition(requester, pr.id)

    await asyncio.gather(
        engine.decide_requisition(approver_a, pr.id, "u-app-a", ApprovalStatus.APPROVED),
        engine.decide_requisition(approver_b, pr.id, "u-app-b", ApprovalStatus.APPROVED),
    )

    final = await engine.get_requisition(pr.id)
    assert final.status == RequisitionStatus.APPROVED
    assert final.version == 4
    assert all(a.status == ApprovalStatus.APPROVED for a in final.approvers)
    assert [e.kind for e in notifier.sent].count("pr_approved") == 1


@pytest.mark.asyncio
async def test_parallel_conversions_create_one_po(engine, requester, default_approver, procurement, make_vendor, pr_payload):
    await make_vendor()
    pr = await _approved_pr(engine, requester, default_approver, pr_payload)

    results = await asyncio.gather(
        engine.convert_to_purchase_order(procurement, pr.id),
        engine.convert_to_purchase_order(procurement, pr.id),
        return_exceptions=True,
    )

    converted = [r for r in results if isinstance(r, ConversionResult)]
    refused = [r for r in results if isinstance(r, InvalidStateError)]
    assert len(converted) == 1
    assert len(refused) == 1
    assert refused[0].current_state == RequisitionStatus.CONVERTED_TO_PO.value
    assert len(await engine.list_purchase_orders(pr_id=pr.id)) == 1
    assert (await engine.get_requisition(pr.id)).status == RequisitionStatus.CONVERTED_TO_PO


@pytest.mark.asyncio
async def test_parallel_receipts_accumulate(engine, procurement, default_approver, warehouse, make_vendor):
    vendor = await make_vendor()
    po = await engine.create_purchase_order(
        procurement,
        {"vendor_id": vendor.id, "line_items": [{"description": "Paper", "quantity": 10, "unit_price": "3.00"}]},
    )
    await engine.submit_purchase_order(procurement, po.id)
    await engine.decide_purchase_order(
        default_approver, po.id, default_approver.current_user().id, ApprovalStatus.APPROVED
    )
    po = await engine.send_to_vendor(default_approver, po.id)
    half = {"po_id": po.id, "line_items": [{"line_item_id": po.line_items[0].id, "quantity_received": 5}]}

    results = await asyncio.gather(
        engine.record_receipt(warehouse, half),
        engine.record_receipt(warehouse, half),
    )

    numbers = {r.receipt.receipt_number for r in results}
    assert numbers == {"GR-000001", "GR-000002"}
    statuses = sorted(r.receipt.line_items[0].status.value for r in results)
    assert statuses == [ReceiptLineStatus.COMPLETE.value, ReceiptLineStatus.PARTIAL.value]
    assert (await engine.get_purchase_order(po.id)).status == PurchaseOrderStatus.COMPLETED


@pytest.mark.asyncio
async def test_parallel_creates_get_distinct_numbers(engine, requester, pr_payload):
    created = await asyncio.gather(
        *(engine.create_requisition(requester, pr_payload()) for _ in range(5))
    )

    assert sorted(pr.pr_number for pr in created) == [f"PR-00000{i}" for i in range(1, 6)]
    assert await engine.count_requisitions() == 5
