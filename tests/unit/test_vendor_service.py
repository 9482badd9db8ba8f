"""
Unit tests for p2p/services/vendor_service.py

Tests partial vendor updates (omitted and null fields keep their values),
status filtering with counts, and the conversion-time vendor selection.
"""

import pytest

from p2p.errors import NotFoundError, PermissionDeniedError, ValidationError
from p2p.schemas.status import VendorStatus
from p2p.services import vendor_service


@pytest.mark.asyncio
async def test_null_status_and_categories_leave_vendor_unchanged(store, admin, make_vendor):
    vendor = await make_vendor()

    updated = await vendor_service.update_vendor(
        store, admin, vendor.id, {"status": None, "categories": None}
    )

    assert updated.status == VendorStatus.ACTIVE
    assert updated.categories == ["Office Supplies"]
    stored = await vendor_service.get_vendor(store, vendor.id)
    assert stored.status == VendorStatus.ACTIVE
    assert stored.categories == ["Office Supplies"]


@pytest.mark.asyncio
async def test_update_email_and_status(store, admin, make_vendor):
    vendor = await make_vendor()

    updated = await vendor_service.update_vendor(
        store, admin, vendor.id, {"email": "billing@officesupplies.example.com", "status": "INACTIVE"}
    )

    assert updated.email == "billing@officesupplies.example.com"
    assert updated.status == VendorStatus.INACTIVE
    assert updated.name == vendor.name
    assert updated.created_at == vendor.created_at


@pytest.mark.asyncio
async def test_update_rejects_bad_email(store, admin, make_vendor):
    vendor = await make_vendor()

    with pytest.raises(ValidationError):
        await vendor_service.update_vendor(store, admin, vendor.id, {"email": "not-an-email"})


@pytest.mark.asyncio
async def test_update_unknown_vendor(store, admin):
    with pytest.raises(NotFoundError):
        await vendor_service.update_vendor(store, admin, "ghost", {"name": "Ghost Ltd"})


@pytest.mark.asyncio
async def test_update_requires_manage_vendors(store, requester, make_vendor):
    vendor = await make_vendor()

    with pytest.raises(PermissionDeniedError):
        await vendor_service.update_vendor(store, requester, vendor.id, {"name": "Renamed"})


@pytest.mark.asyncio
async def test_list_and_count_by_status(store, make_vendor):
    await make_vendor(name="Alpha Supplies")
    await make_vendor(name="Dormant Inc.", status="INACTIVE")
    await make_vendor(name="Gamma Goods")

    active = await vendor_service.list_vendors(store, VendorStatus.ACTIVE)
    assert [v.name for v in active] == ["Alpha Supplies", "Gamma Goods"]
    assert await vendor_service.count_vendors(store, VendorStatus.ACTIVE) == 2
    assert await vendor_service.count_vendors(store) == 3

    second_page = await vendor_service.list_vendors(store, offset=1, limit=1)
    assert [v.name for v in second_page] == ["Dormant Inc."]
