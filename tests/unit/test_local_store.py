"""
Unit tests for p2p/services/local_store.py

Tests: version bump on update, compare-and-set conflicts, rollback of a
failed transaction, windowed listing and counts, JSON persistence across
instances.
"""

import pytest

from p2p.errors import ConflictError, NotFoundError, StorageError
from p2p.services.local_store import LocalEntityStore
from p2p.services.store import EntityType


@pytest.mark.asyncio
async def test_create_sets_version_and_update_bumps_it():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        created = await tx.create(EntityType.VENDOR, {"id": "v1", "name": "Acme", "status": "ACTIVE"})
        assert created["version"] == 1
        updated = await tx.update(EntityType.VENDOR, "v1", {"name": "Acme Ltd"}, expected_version=1)

    assert updated["version"] == 2
    assert updated["name"] == "Acme Ltd"
    assert updated["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_stale_update_conflicts():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        await tx.create(EntityType.VENDOR, {"id": "v1", "name": "Acme"})
        await tx.update(EntityType.VENDOR, "v1", {"name": "B"})

    with pytest.raises(ConflictError):
        async with store.transaction() as tx:
            await tx.update(EntityType.VENDOR, "v1", {"name": "C"}, expected_version=1)

    async with store.transaction() as tx:
        assert (await tx.get(EntityType.VENDOR, "v1"))["name"] == "B"


@pytest.mark.asyncio
async def test_failed_transaction_discards_writes():
    store = LocalEntityStore()
    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            await tx.create(EntityType.VENDOR, {"id": "v1", "name": "Acme"})
            raise RuntimeError("boom")

    async with store.transaction() as tx:
        assert await tx.get(EntityType.VENDOR, "v1") is None
        assert await tx.list(EntityType.VENDOR) == []


@pytest.mark.asyncio
async def test_list_filters_by_equality():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        await tx.create(EntityType.VENDOR, {"id": "v1", "status": "ACTIVE"})
        await tx.create(EntityType.VENDOR, {"id": "v2", "status": "INACTIVE"})
        await tx.create(EntityType.VENDOR, {"id": "v3", "status": "ACTIVE"})
        active = await tx.list(EntityType.VENDOR, {"status": "ACTIVE"})

    assert [r["id"] for r in active] == ["v1", "v3"]


@pytest.mark.asyncio
async def test_list_window_and_count():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        for i in range(5):
            await tx.create(EntityType.VENDOR, {"id": f"v{i}", "status": "ACTIVE" if i % 2 == 0 else "INACTIVE"})

    async with store.transaction() as tx:
        page = await tx.list(EntityType.VENDOR, offset=1, limit=2)
        tail = await tx.list(EntityType.VENDOR, {"status": "ACTIVE"}, offset=2)
        assert await tx.count(EntityType.VENDOR) == 5
        assert await tx.count(EntityType.VENDOR, {"status": "ACTIVE"}) == 3
        assert await tx.count(EntityType.GOODS_RECEIPT) == 0

    assert [r["id"] for r in page] == ["v1", "v2"]
    assert [r["id"] for r in tail] == ["v4"]


@pytest.mark.asyncio
async def test_returned_records_are_copies():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        record = await tx.create(EntityType.VENDOR, {"id": "v1", "categories": ["a"]})
        record["categories"].append("b")
        assert (await tx.get(EntityType.VENDOR, "v1"))["categories"] == ["a"]


@pytest.mark.asyncio
async def test_duplicate_create_and_missing_delete():
    store = LocalEntityStore()
    async with store.transaction() as tx:
        await tx.create(EntityType.VENDOR, {"id": "v1"})
        with pytest.raises(ConflictError):
            await tx.create(EntityType.VENDOR, {"id": "v1"})
        with pytest.raises(NotFoundError):
            await tx.delete(EntityType.VENDOR, "ghost")
        with pytest.raises(NotFoundError):
            await tx.update(EntityType.VENDOR, "ghost", {})


@pytest.mark.asyncio
async def test_persists_and_reloads(tmp_path):
    path = str(tmp_path / "store.json")
    store = LocalEntityStore(path=path)
    async with store.transaction() as tx:
        await tx.create(EntityType.REQUISITION, {"id": "pr1", "pr_number": "PR-000001"})

    reloaded = LocalEntityStore(path=path)
    async with reloaded.transaction() as tx:
        row = await tx.get(EntityType.REQUISITION, "pr1")

    assert row == {"id": "pr1", "pr_number": "PR-000001", "version": 1}
    assert await reloaded.ping() is True


def test_corrupt_file_is_a_storage_error(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json")

    with pytest.raises(StorageError):
        LocalEntityStore(path=str(path))
