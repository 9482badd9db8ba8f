from decimal import Decimal

import pytest

from p2p.config import Settings
from p2p.errors import NotFoundError
from p2p.services import approval_service, cost_center_service, vendor_service
from p2p.services.identity import Identity
from p2p.services.local_store import LocalEntityStore
from p2p.services.notification_service import LogNotificationSink
from p2p.services.workflow_service import WorkflowEngine


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="test",
        STORE_BACKEND="local",
        LOCAL_STORE_PATH=None,
        STORE_RETRY_ATTEMPTS=2,
        NOTIFICATION_BACKEND="log",
        APPROVAL_LIMIT_POLICY="advisory",
    )


@pytest.fixture
def store():
    return LocalEntityStore()


@pytest.fixture
def notifier():
    return LogNotificationSink()


@pytest.fixture
def engine(store, notifier, settings):
    return WorkflowEngine(store, notifier, settings=settings)


# ---------- callers ----------

@pytest.fixture
def admin():
    return Identity.for_user("u-admin", "Admin User", "admin@example.com", role="ADMIN")


@pytest.fixture
def requester():
    return Identity.for_user("u-req", "Rita Requester", "rita@example.com", role="REQUESTER")


@pytest.fixture
def approver_a():
    return Identity.for_user("u-app-a", "Alice Approver", "alice@example.com", role="APPROVER")


@pytest.fixture
def approver_b():
    return Identity.for_user("u-app-b", "Bob Approver", "bob@example.com", role="APPROVER")


@pytest.fixture
def approver_c():
    return Identity.for_user("u-app-c", "Carol Approver", "carol@example.com", role="APPROVER")


@pytest.fixture
def default_approver(settings):
    return Identity.for_user(
        settings.DEFAULT_APPROVER_ID,
        settings.DEFAULT_APPROVER_NAME,
        settings.DEFAULT_APPROVER_EMAIL,
        role="APPROVER",
    )


@pytest.fixture
def procurement():
    return Identity.for_user("u-proc", "Pat Procurement", "pat@example.com", role="PROCUREMENT_OFFICER")


@pytest.fixture
def warehouse():
    return Identity.for_user("u-wh", "Walt Warehouse", "walt@example.com", role="WAREHOUSE_OPERATOR")


# ---------- data builders ----------

@pytest.fixture
def pr_payload():
    """Requisition input: qty 5 @ 10.00 + qty 2 @ 50.00 = 150.00 on CC001."""
    def _make(**overrides):
        data = {
            "department": "Engineering",
            "cost_center": "CC001",
            "budget_code": "BUD-2026-ENG",
            "justification": "Replacement equipment for the new team",
            "date_needed": "2026-12-01",
            "line_items": [
                {"description": "USB-C dock", "category": "Hardware", "quantity": 5, "unit_price": "10.00"},
                {"description": "Monitor arm", "category": "Furniture", "quantity": 2, "unit_price": "50.00"},
            ],
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def make_vendor(store, admin):
    async def _make(name="Office Supplies Co.", status="ACTIVE", email=None):
        return await vendor_service.create_vendor(
            store,
            admin,
            {
                "name": name,
                "contact_person": "Sarah Johnson",
                "email": email or "orders@officesupplies.example.com",
                "payment_terms": "Net 30",
                "categories": ["Office Supplies"],
                "status": status,
            },
        )

    return _make


@pytest.fixture
def ensure_cost_center(store, admin):
    async def _ensure(cost_center_id="CC001", name=None):
        try:
            return await cost_center_service.get_cost_center(store, cost_center_id)
        except NotFoundError:
            return await cost_center_service.create_cost_center(
                store, admin, {"id": cost_center_id, "name": name or f"Cost center {cost_center_id}"}
            )

    return _ensure


@pytest.fixture
def bind(store, admin, ensure_cost_center):
    async def _bind(identity, cost_center="CC001", limit="1000"):
        await ensure_cost_center(cost_center)
        user = identity.current_user()
        return await approval_service.create_binding(
            store,
            admin,
            {
                "user_id": user.id,
                "user_name": user.name,
                "user_email": user.email,
                "cost_center": cost_center,
                "approval_limit": Decimal(limit),
            },
        )

    return _bind
