import pytest

from core import ledger
from core.errors import InsufficientStockError, StoreError
from db.inventory import InventoryTransaction, StockTransfer
from db.inventory.transfer import TRANSFER_COMPLETED


async def _log(ds, **filters):
    return await ds.get(InventoryTransaction, filters)


async def test_add_stock_creates_record_and_logs(ds, ctx, seed, qty):
    out = await ledger.add_stock(ds, ctx, product_id=seed.product, store_id=seed.store_a, quantity=12, notes="delivery")

    assert out["inventory"].quantity == 12
    assert out["inventory"].low_stock_threshold == 5
    assert out["transaction"].type == "stock_in"
    assert out["transaction"].quantity == 12
    assert out["transaction"].user_id == ctx.user_id

    await ledger.add_stock(ds, ctx, product_id=seed.product, store_id=seed.store_a, quantity=3)
    assert await qty(seed.product, seed.store_a) == 15
    assert len(await _log(ds, product_id=seed.product, type="stock_in")) == 2


async def test_add_stock_to_foreign_store_is_not_found(ds, ctx, seed, qty):
    with pytest.raises(StoreError) as exc:
        await ledger.add_stock(ds, ctx, product_id=seed.product, store_id=seed.foreign_store, quantity=1)
    assert exc.value.is_not_found
    assert await qty(seed.product, seed.foreign_store) is None


async def test_remove_stock(ds, ctx, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 10)

    out = await ledger.remove_stock(ds, ctx, product_id=seed.product, store_id=seed.store_a, quantity=4, reason="damaged")

    assert out["inventory"].quantity == 6
    assert out["transaction"].type == "stock_out"
    assert out["transaction"].quantity == -4
    assert out["transaction"].reason == "damaged"
    assert await qty(seed.product, seed.store_a) == 6


async def test_remove_more_than_available(ds, ctx, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 3)

    with pytest.raises(InsufficientStockError) as exc:
        await ledger.remove_stock(ds, ctx, product_id=seed.product, store_id=seed.store_a, quantity=5)
    assert exc.value.available == 3
    assert exc.value.requested == 5
    assert await qty(seed.product, seed.store_a) == 3
    assert await _log(ds, product_id=seed.product) == []


async def test_remove_without_record(ds, ctx, seed):
    with pytest.raises(StoreError) as exc:
        await ledger.remove_stock(ds, ctx, product_id=seed.product, store_id=seed.store_a, quantity=1)
    assert exc.value.is_not_found


async def test_transfer_stock_moves_and_logs_pair(ds, ctx, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 8)

    transfer = await ledger.transfer_stock(
        ds,
        ctx,
        product_id=seed.product,
        source_store_id=seed.store_a,
        destination_store_id=seed.store_b,
        quantity=5,
        notes="rebalance",
    )

    assert transfer.status == TRANSFER_COMPLETED
    assert await qty(seed.product, seed.store_a) == 3
    assert await qty(seed.product, seed.store_b) == 5

    rows = await _log(ds, reference_id=transfer.id)
    by_type = {r.type: r for r in rows}
    assert set(by_type) == {"transfer_out", "transfer_in"}
    assert by_type["transfer_out"].store_id == seed.store_a
    assert by_type["transfer_out"].quantity == -5
    assert by_type["transfer_in"].store_id == seed.store_b
    assert by_type["transfer_in"].quantity == 5


async def test_transfer_stock_requires_enough_at_source(ds, ctx, seed, put_stock, qty):
    await put_stock(seed.product, seed.store_a, 2)

    with pytest.raises(InsufficientStockError):
        await ledger.transfer_stock(
            ds,
            ctx,
            product_id=seed.product,
            source_store_id=seed.store_a,
            destination_store_id=seed.store_b,
            quantity=5,
        )

    assert await qty(seed.product, seed.store_a) == 2
    assert await qty(seed.product, seed.store_b) is None
    assert await ds.get(StockTransfer) == []


async def test_transfer_stock_of_foreign_product_is_rejected(ds, ctx, seed, put_stock, qty):
    await put_stock(seed.foreign_product, seed.store_a, 5)

    with pytest.raises(StoreError) as exc:
        await ledger.transfer_stock(
            ds,
            ctx,
            product_id=seed.foreign_product,
            source_store_id=seed.store_a,
            destination_store_id=seed.store_b,
            quantity=1,
        )

    assert exc.value.is_not_found
    assert await qty(seed.foreign_product, seed.store_a) == 5
    assert await qty(seed.foreign_product, seed.store_b) is None


async def test_transfer_stock_from_foreign_store_hides_its_quantity(ds, ctx, seed, put_stock):
    await put_stock(seed.product, seed.foreign_store, 2)

    with pytest.raises(StoreError) as exc:
        await ledger.transfer_stock(
            ds,
            ctx,
            product_id=seed.product,
            source_store_id=seed.foreign_store,
            destination_store_id=seed.store_b,
            quantity=5,
        )

    assert exc.value.is_not_found
    assert "Available" not in exc.value.message
