"""
Unit tests for p2p/services/cost_center_service.py

Tests creation, duplicate ids, permission gating, partial updates and the
id ordering of the listing.
"""

import pytest

from p2p.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from p2p.services.cost_center_service import (
    create_cost_center,
    get_cost_center,
    list_cost_centers,
    update_cost_center,
)


@pytest.mark.asyncio
async def test_create_and_get(store, admin):
    created = await create_cost_center(
        store, admin, {"id": "CC010", "name": "Research", "description": "Lab consumables"}
    )

    fetched = await get_cost_center(store, "CC010")
    assert fetched == created
    assert fetched.description == "Lab consumables"


@pytest.mark.asyncio
async def test_list_is_ordered_by_id(store, admin):
    for cc_id in ("CC003", "CC001", "CC002"):
        await create_cost_center(store, admin, {"id": cc_id, "name": f"Center {cc_id}"})

    assert [cc.id for cc in await list_cost_centers(store)] == ["CC001", "CC002", "CC003"]


@pytest.mark.asyncio
async def test_duplicate_id_conflicts(store, admin):
    await create_cost_center(store, admin, {"id": "CC001", "name": "Operations"})

    with pytest.raises(ConflictError):
        await create_cost_center(store, admin, {"id": "CC001", "name": "Other"})

    assert (await get_cost_center(store, "CC001")).name == "Operations"


@pytest.mark.asyncio
async def test_blank_name_rejected(store, admin):
    with pytest.raises(ValidationError):
        await create_cost_center(store, admin, {"id": "CC001", "name": "   "})
    assert await list_cost_centers(store) == []


@pytest.mark.asyncio
async def test_requires_manage_users(store, admin, procurement):
    with pytest.raises(PermissionDeniedError):
        await create_cost_center(store, procurement, {"id": "CC001", "name": "Operations"})

    await create_cost_center(store, admin, {"id": "CC001", "name": "Operations"})
    with pytest.raises(PermissionDeniedError):
        await update_cost_center(store, procurement, "CC001", {"name": "Ops"})


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(store, admin):
    created = await create_cost_center(
        store, admin, {"id": "CC001", "name": "Operations", "description": "General"}
    )

    renamed = await update_cost_center(store, admin, "CC001", {"name": "Ops", "description": None})

    assert renamed.name == "Ops"
    assert renamed.description == "General"
    assert renamed.created_at == created.created_at
    assert renamed.updated_at >= created.updated_at


@pytest.mark.asyncio
async def test_unknown_cost_center(store, admin):
    with pytest.raises(NotFoundError):
        await get_cost_center(store, "CC404")
    with pytest.raises(NotFoundError):
        await update_cost_center(store, admin, "CC404", {"name": "Ghost"})
