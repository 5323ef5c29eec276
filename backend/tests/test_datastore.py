import pytest
from sqlalchemy import select

from core.errors import MULTIPLE, NOT_FOUND, StoreError
from db.database import Permission, Store
from db.inventory import StockRecord


async def test_get_single_not_found(ds, seed):
    with pytest.raises(StoreError) as exc:
        await ds.get(StockRecord, {"product_id": seed.product, "store_id": seed.store_a}, single=True)
    assert exc.value.code == NOT_FOUND
    assert exc.value.is_not_found


async def test_get_single_multiple(ds, seed):
    with pytest.raises(StoreError) as exc:
        await ds.get(Store, {"company_id": seed.company_id}, single=True)
    assert exc.value.code == MULTIPLE


async def test_get_filters_and_find(ds, seed):
    stores = await ds.get(Store, {"company_id": seed.company_id}, order_by=[Store.name.asc()])
    assert [s.name for s in stores] == ["Main Street", "Mall"]

    assert await ds.find(StockRecord, {"product_id": seed.product, "store_id": seed.store_a}) is None
    found = await ds.find(Store, {"id": seed.store_b})
    assert found.name == "Mall"


async def test_insert_single_and_batch(ds, seed):
    one = await ds.insert(Permission, {"name": "inventory.manage"})
    assert one.id is not None

    many = await ds.insert(Permission, [{"name": "sales.create"}, {"name": "roles.manage"}])
    assert len(many) == 2
    assert {p.name for p in await ds.get(Permission)} == {"inventory.manage", "sales.create", "roles.manage"}


async def test_update_returns_matched_rows(ds, seed, put_stock):
    await put_stock(seed.product, seed.store_a, 10)

    rows = await ds.update(StockRecord, {"quantity": 4}, {"product_id": seed.product, "store_id": seed.store_a})
    assert len(rows) == 1
    assert rows[0].quantity == 4

    assert await ds.update(StockRecord, {"quantity": 1}, {"product_id": seed.product2}) == []


async def test_delete(ds, seed):
    await ds.insert(Permission, {"name": "x.y"})
    assert await ds.delete(Permission, {"name": "x.y"}) is True
    assert await ds.get(Permission, {"name": "x.y"}) == []


async def test_constraint_violation_is_store_error_and_session_recovers(ds, seed, put_stock):
    await put_stock(seed.product, seed.store_a, 1)

    with pytest.raises(StoreError) as exc:
        await ds.insert(StockRecord, {"product_id": seed.product, "store_id": seed.store_a, "quantity": 2})
    assert exc.value.code is None

    rows = await ds.get(StockRecord, {"product_id": seed.product})
    assert [r.quantity for r in rows] == [1]


async def test_transaction_rolls_back_on_error(ds, session, seed):
    with pytest.raises(RuntimeError):
        async with ds.transaction():
            await ds.insert(Permission, {"name": "a.b"})
            raise RuntimeError("boom")

    res = await session.execute(select(Permission.name))
    assert res.scalars().all() == []


async def test_transaction_commits_on_exit(ds, session, seed):
    async with ds.transaction():
        await ds.insert(Permission, {"name": "a.b"})
        await ds.insert(Permission, {"name": "c.d"})

    res = await session.execute(select(Permission.name).order_by(Permission.name))
    assert res.scalars().all() == ["a.b", "c.d"]
