"""
End-to-end purchasing cycle through the HTTP API:
vendor + approver setup -> PR -> approval -> conversion -> PO approval ->
send -> goods receipt, plus the error envelope on the way.
"""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from p2p.main import create_app
from p2p.services.auth_service import create_access_token
from p2p.services.local_store import LocalEntityStore
from p2p.services.notification_service import LogNotificationSink

API = "/api/v1"


def _auth(user_id, email, name, role):
    return {"Authorization": f"Bearer {create_access_token(user_id, email, name, role=role)}"}


FINANCE = _auth("u-fin", "fran@example.com", "Fran Finance", "FINANCE")
ADMIN = _auth("u-admin", "admin@example.com", "Admin User", "ADMIN")
REQUESTER = _auth("u-req", "rita@example.com", "Rita Requester", "REQUESTER")
APPROVER = _auth("u-app-a", "alice@example.com", "Alice Approver", "APPROVER")
PROCUREMENT = _auth("u-proc", "pat@example.com", "Pat Procurement", "PROCUREMENT_OFFICER")
WAREHOUSE = _auth("u-wh", "walt@example.com", "Walt Warehouse", "WAREHOUSE_OPERATOR")


@pytest.fixture
def notifier():
    return LogNotificationSink()


@pytest.fixture
async def client(settings, notifier):
    app = create_app(settings, store=LocalEntityStore(), notifier=notifier)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c


@pytest.mark.asyncio
async def test_full_purchase_cycle(client, notifier, pr_payload):
    # 1. Admin sets up a vendor and the CC001 approver
    resp = await client.post(
        f"{API}/vendors",
        json={"name": "Acme Supplies", "email": "orders@acme.example.com", "categories": ["IT"]},
        headers=ADMIN,
    )
    assert resp.status_code == 201
    vendor_id = resp.json()["id"]

    resp = await client.post(
        f"{API}/cost-centers", json={"id": "CC001", "name": "Operations"}, headers=ADMIN
    )
    assert resp.status_code == 201

    resp = await client.post(
        f"{API}/cost-center-approvers",
        json={
            "user_id": "u-app-a",
            "user_name": "Alice Approver",
            "user_email": "alice@example.com",
            "cost_center": "CC001",
            "approval_limit": "1000",
        },
        headers=ADMIN,
    )
    assert resp.status_code == 201

    resp = await client.get(
        f"{API}/cost-center-approvers/resolve",
        params={"cost_center": "CC001", "total_amount": "150"},
        headers=PROCUREMENT,
    )
    assert [s["id"] for s in resp.json()] == ["u-app-a"]

    # 2. Requester raises and submits a PR
    resp = await client.post(f"{API}/purchase-requisitions", json=pr_payload(), headers=REQUESTER)
    assert resp.status_code == 201
    pr = resp.json()
    assert pr["pr_number"] == "PR-000001"
    assert pr["status"] == "DRAFT"
    assert Decimal(pr["total_amount"]) == Decimal("150")

    resp = await client.post(f"{API}/purchase-requisitions/{pr['id']}/submit", headers=REQUESTER)
    assert resp.status_code == 200
    assert resp.json()["status"] == "PENDING_APPROVAL"
    assert [a["approver_id"] for a in resp.json()["approvers"]] == ["u-app-a"]

    # 3. Approver signs off
    resp = await client.post(f"{API}/purchase-requisitions/{pr['id']}/approve", headers=APPROVER)
    assert resp.status_code == 200
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["version"] == 3

    # 3b. Stale version is a conflict with the standard error envelope
    resp = await client.post(
        f"{API}/purchase-requisitions/{pr['id']}/submit",
        params={"expected_version": 1},
        headers=REQUESTER,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "VERSION_CONFLICT"
    assert resp.json()["error"]["entity_id"] == pr["id"]

    # 4. Procurement converts to a PO
    resp = await client.post(f"{API}/purchase-requisitions/{pr['id']}/convert", headers=PROCUREMENT)
    assert resp.status_code == 201
    conversion = resp.json()
    assert conversion["requisition"]["status"] == "CONVERTED_TO_PO"
    po = conversion["purchase_order"]
    assert po["pr_id"] == pr["id"]
    assert po["vendor_id"] == vendor_id
    assert po["status"] == "DRAFT"

    resp = await client.post(f"{API}/purchase-requisitions/{pr['id']}/convert", headers=PROCUREMENT)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"
    assert resp.json()["error"]["current_state"] == "CONVERTED_TO_PO"

    # 5. PO approval and dispatch
    resp = await client.post(f"{API}/purchase-orders/{po['id']}/submit", headers=PROCUREMENT)
    assert resp.json()["status"] == "PENDING_APPROVAL"
    resp = await client.post(f"{API}/purchase-orders/{po['id']}/approve", headers=APPROVER)
    assert resp.json()["status"] == "APPROVED"
    resp = await client.post(f"{API}/purchase-orders/{po['id']}/send", headers=APPROVER)
    assert resp.status_code == 200
    assert resp.json()["status"] == "SENT_TO_VENDOR"

    # 6. Warehouse receives everything
    resp = await client.post(
        f"{API}/goods-receipts",
        json={
            "po_id": po["id"],
            "line_items": [
                {"line_item_id": li["id"], "quantity_received": li["quantity"]} for li in po["line_items"]
            ],
        },
        headers=WAREHOUSE,
    )
    assert resp.status_code == 201
    assert resp.json()["purchase_order"]["status"] == "COMPLETED"
    assert resp.json()["receipt"]["status"] == "COMPLETED"

    resp = await client.get(f"{API}/goods-receipts", params={"po_id": po["id"]}, headers=WAREHOUSE)
    assert resp.json()["pagination"]["total"] == 1

    kinds = [e.kind for e in notifier.sent]
    assert kinds[:3] == ["pr_approval_request", "pr_approved", "pr_converted"]
    assert kinds[-1] == "po_sent"


@pytest.mark.asyncio
async def test_wrong_role_is_forbidden(client, pr_payload):
    resp = await client.post(f"{API}/purchase-requisitions", json=pr_payload(), headers=WAREHOUSE)

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


@pytest.mark.asyncio
async def test_empty_line_items_rejected(client, pr_payload):
    resp = await client.post(
        f"{API}/purchase-requisitions", json=pr_payload(line_items=[]), headers=REQUESTER
    )

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_unknown_requisition_is_not_found(client):
    resp = await client.get(f"{API}/purchase-requisitions/does-not-exist", headers=REQUESTER)

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_invalid_token(client):
    resp = await client.get(
        f"{API}/purchase-requisitions", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_TOKEN_INVALID"


@pytest.mark.asyncio
async def test_health_and_request_id(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_cost_center_management(client):
    for cc_id, name in [("CC002", "Marketing"), ("CC001", "Operations")]:
        resp = await client.post(
            f"{API}/cost-centers", json={"id": cc_id, "name": name}, headers=ADMIN
        )
        assert resp.status_code == 201

    resp = await client.get(f"{API}/cost-centers", headers=REQUESTER)
    assert [cc["id"] for cc in resp.json()] == ["CC001", "CC002"]

    resp = await client.patch(
        f"{API}/cost-centers/CC002", json={"description": "Campaigns"}, headers=ADMIN
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Marketing"
    assert resp.json()["description"] == "Campaigns"

    resp = await client.post(
        f"{API}/cost-centers", json={"id": "CC003", "name": "IT"}, headers=PROCUREMENT
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"{API}/cost-center-approvers",
        json={
            "user_id": "u-app-a",
            "user_name": "Alice Approver",
            "user_email": "alice@example.com",
            "cost_center": "CC009",
            "approval_limit": "1000",
        },
        headers=ADMIN,
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["entity_type"] == "cost_centers"


@pytest.mark.asyncio
async def test_list_pages_are_windowed(client, pr_payload):
    for _ in range(3):
        resp = await client.post(f"{API}/purchase-requisitions", json=pr_payload(), headers=REQUESTER)
        assert resp.status_code == 201

    resp = await client.get(
        f"{API}/purchase-requisitions", params={"page": 2, "limit": 2}, headers=REQUESTER
    )

    body = resp.json()
    assert [pr["pr_number"] for pr in body["data"]] == ["PR-000003"]
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["total_pages"] == 2
    assert body["pagination"]["has_prev"] is True
    assert body["pagination"]["has_next"] is False


@pytest.mark.asyncio
async def test_status_summary_requires_view_reports(client, pr_payload):
    await client.post(f"{API}/purchase-requisitions", json=pr_payload(), headers=REQUESTER)

    resp = await client.get(f"{API}/reports/summary", headers=FINANCE)
    assert resp.status_code == 200
    assert resp.json()["requisitions"]["DRAFT"] == 1
    assert resp.json()["pending_approvals"] == 0

    resp = await client.get(f"{API}/reports/summary", headers=REQUESTER)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"
