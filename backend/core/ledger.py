"""
Inventory ledger: stock adjustments per (product, store) and transfers between stores.

All writes go through `Datastore`. Items are processed one at a time because each
adjustment needs a fresh read of the current quantity. Writes are compare-and-swap
on the quantity that was read, so a concurrent change raises StoreError(code=CONFLICT)
instead of being overwritten. Nothing is rolled back on failure unless the caller
asks for `atomic=True`.
"""

import logging
from types import SimpleNamespace
from typing import Any, Iterable, List, Optional, Protocol, Sequence
from uuid import UUID

from core.config import settings
from core.context import TenantContext
from core.errors import CONFLICT, NOT_FOUND, InsufficientStockError, StoreError, TransferStateError
from db.database import Product as ProductModel, Store as StoreModel
from db.datastore import Datastore
from db.inventory import InventoryTransaction, StockRecord, StockTransfer, StockTransferItem
from db.inventory.transfer import TRANSFER_COMPLETED, TRANSFER_PENDING

logger = logging.getLogger(__name__)


class LineItem(Protocol):
    product_id: Optional[UUID]
    quantity: Optional[int]


def line_item(product_id: Any, quantity: Any) -> SimpleNamespace:
    """Ad-hoc LineItem for callers that only have ids and counts."""
    return SimpleNamespace(product_id=product_id, quantity=quantity)


async def _find_stock(ds: Datastore, product_id: UUID, store_id: UUID) -> Optional[StockRecord]:
    return await ds.find(StockRecord, {"product_id": product_id, "store_id": store_id})


async def _write_quantity(ds: Datastore, record: StockRecord, new_quantity: int) -> StockRecord:
    rows = await ds.update(
        StockRecord,
        {"quantity": int(new_quantity)},
        {"id": record.id, "quantity": record.quantity},
    )
    if not rows:
        raise StoreError(
            f"Stock for product={record.product_id} store={record.store_id} changed concurrently",
            code=CONFLICT,
        )
    if new_quantity < 0:
        logger.warning(
            "Stock for product=%s store=%s is negative (%d)", record.product_id, record.store_id, new_quantity
        )
    return rows[0]


async def _create_stock(ds: Datastore, product_id: UUID, store_id: UUID, quantity: int) -> StockRecord:
    return await ds.insert(
        StockRecord,
        {
            "product_id": product_id,
            "store_id": store_id,
            "quantity": int(quantity),
            "low_stock_threshold": settings.default_low_stock_threshold,
        },
    )


async def _credit(ds: Datastore, product_id: UUID, store_id: UUID, quantity: int) -> StockRecord:
    existing = await _find_stock(ds, product_id, store_id)
    if existing is None:
        return await _create_stock(ds, product_id, store_id, quantity)
    return await _write_quantity(ds, existing, existing.quantity + quantity)


async def _ensure_owned(ds: Datastore, ctx: TenantContext, model, row_id: UUID):
    """Load a tenant-scoped row or raise StoreError(NOT_FOUND)."""
    return await ds.get(model, {"id": row_id, "company_id": ctx.company_id}, single=True)


async def ensure_products_owned(ds: Datastore, ctx: TenantContext, product_ids: Iterable[Optional[UUID]]) -> None:
    """Raise StoreError(NOT_FOUND) unless every given product belongs to the caller's company."""
    for product_id in dict.fromkeys(pid for pid in product_ids if pid is not None):
        await _ensure_owned(ds, ctx, ProductModel, product_id)


def _check_transfer(transfer: StockTransfer, items: Sequence[LineItem]) -> None:
    if transfer.status != TRANSFER_PENDING:
        raise TransferStateError(f"Transfer {transfer.id} is {transfer.status}, expected {TRANSFER_PENDING}")
    if not items:
        raise TransferStateError(f"Transfer {transfer.id} has no items")
    for item in items:
        if item.quantity is None or int(item.quantity) <= 0:
            raise TransferStateError(f"Transfer item quantity must be > 0 (product={item.product_id})")


async def _apply_transfer_items(ds: Datastore, transfer: StockTransfer, items: Sequence[LineItem]) -> StockTransfer:
    for item in items:
        qty = int(item.quantity)

        source = await _find_stock(ds, item.product_id, transfer.source_store_id)
        if source is not None:
            await _write_quantity(ds, source, source.quantity - qty)

        await _credit(ds, item.product_id, transfer.destination_store_id, qty)

    updated = await ds.update(StockTransfer, {"status": TRANSFER_COMPLETED}, {"id": transfer.id})
    if not updated:
        raise StoreError(f"Transfer {transfer.id} disappeared while being applied", code=NOT_FOUND)
    return updated[0]


async def apply_transfer(
    ds: Datastore,
    transfer: StockTransfer,
    items: Sequence[LineItem],
    *,
    atomic: bool = False,
) -> StockTransfer:
    """
    Move every item's quantity from the transfer's source store to its destination,
    then mark the transfer completed.

    - A missing source record is skipped; a missing destination record is created.
    - Quantities are not floored: the source may go negative.
    - The first failure propagates. Without `atomic`, adjustments already written stay
      written and the transfer stays pending.
    """
    _check_transfer(transfer, items)

    if atomic:
        async with ds.transaction():
            completed = await _apply_transfer_items(ds, transfer, items)
    else:
        completed = await _apply_transfer_items(ds, transfer, items)

    logger.info(
        "Transfer %s completed: %d item(s) %s -> %s",
        completed.id, len(items), completed.source_store_id, completed.destination_store_id,
    )
    return completed


async def apply_sale_decrement(ds: Datastore, store_id: UUID, items: Iterable[LineItem]) -> None:
    """Take sold quantities off a store's stock. Items without a product or quantity, and
    products the store has no stock record for, are skipped."""
    for item in items:
        if not item.product_id or not item.quantity:
            continue
        record = await _find_stock(ds, item.product_id, store_id)
        if record is None:
            continue
        await _write_quantity(ds, record, record.quantity - int(item.quantity))


async def add_stock(
    ds: Datastore,
    ctx: TenantContext,
    *,
    product_id: UUID,
    store_id: UUID,
    quantity: int,
    notes: str = "",
    supplier_id: Optional[UUID] = None,
    unit_cost: Optional[float] = None,
) -> dict:
    await _ensure_owned(ds, ctx, StoreModel, store_id)
    await _ensure_owned(ds, ctx, ProductModel, product_id)

    movement = await ds.insert(
        InventoryTransaction,
        {
            "product_id": product_id,
            "store_id": store_id,
            "user_id": ctx.user_id,
            "quantity": int(quantity),
            "type": "stock_in",
            "notes": notes,
            "supplier_id": supplier_id,
            "unit_cost": unit_cost,
        },
    )
    record = await _credit(ds, product_id, store_id, int(quantity))
    return {"inventory": record, "transaction": movement}


async def remove_stock(
    ds: Datastore,
    ctx: TenantContext,
    *,
    product_id: UUID,
    store_id: UUID,
    quantity: int,
    notes: str = "",
    reason: str = "adjustment",
) -> dict:
    await _ensure_owned(ds, ctx, StoreModel, store_id)

    record = await ds.get(StockRecord, {"product_id": product_id, "store_id": store_id}, single=True)
    if record.quantity < quantity:
        raise InsufficientStockError(record.quantity, quantity)

    movement = await ds.insert(
        InventoryTransaction,
        {
            "product_id": product_id,
            "store_id": store_id,
            "user_id": ctx.user_id,
            "quantity": -int(quantity),
            "type": "stock_out",
            "notes": notes,
            "reason": reason,
        },
    )
    record = await _write_quantity(ds, record, record.quantity - int(quantity))
    return {"inventory": record, "transaction": movement}


async def create_transfer(
    ds: Datastore,
    ctx: TenantContext,
    *,
    source_store_id: UUID,
    destination_store_id: UUID,
    items: Sequence[LineItem],
    notes: Optional[str] = None,
    status: str = TRANSFER_PENDING,
) -> tuple[StockTransfer, List[StockTransferItem]]:
    if source_store_id == destination_store_id:
        raise TransferStateError("Source and destination stores must differ")
    if not items:
        raise TransferStateError("A transfer needs at least one item")
    await _ensure_owned(ds, ctx, StoreModel, source_store_id)
    await _ensure_owned(ds, ctx, StoreModel, destination_store_id)
    await ensure_products_owned(ds, ctx, (it.product_id for it in items))

    transfer = await ds.insert(
        StockTransfer,
        {
            "company_id": ctx.company_id,
            "source_store_id": source_store_id,
            "destination_store_id": destination_store_id,
            "user_id": ctx.user_id,
            "status": status,
            "notes": notes,
        },
    )
    rows = await ds.insert(
        StockTransferItem,
        [{"transfer_id": transfer.id, "product_id": it.product_id, "quantity": int(it.quantity)} for it in items],
    )
    return transfer, rows


async def complete_transfer(
    ds: Datastore,
    ctx: TenantContext,
    transfer_id: UUID,
    *,
    atomic: bool = False,
) -> StockTransfer:
    transfer = await ds.get(StockTransfer, {"id": transfer_id, "company_id": ctx.company_id}, single=True)
    items = await ds.get(StockTransferItem, {"transfer_id": transfer_id})
    return await apply_transfer(ds, transfer, items, atomic=atomic)


async def transfer_stock(
    ds: Datastore,
    ctx: TenantContext,
    *,
    product_id: UUID,
    source_store_id: UUID,
    destination_store_id: UUID,
    quantity: int,
    notes: str = "",
) -> StockTransfer:
    """Immediate single-product transfer: the source must hold enough stock, and the
    move is logged as a transfer_out / transfer_in pair referencing a completed transfer."""
    await _ensure_owned(ds, ctx, StoreModel, source_store_id)
    await _ensure_owned(ds, ctx, StoreModel, destination_store_id)
    await ensure_products_owned(ds, ctx, [product_id])

    source = await ds.get(StockRecord, {"product_id": product_id, "store_id": source_store_id}, single=True)
    if source.quantity < quantity:
        raise InsufficientStockError(source.quantity, quantity, where="source location")

    item = line_item(product_id, int(quantity))
    transfer, _items = await create_transfer(
        ds,
        ctx,
        source_store_id=source_store_id,
        destination_store_id=destination_store_id,
        items=[item],
        notes=notes,
        status=TRANSFER_COMPLETED,
    )

    await _write_quantity(ds, source, source.quantity - int(quantity))
    await _credit(ds, product_id, destination_store_id, int(quantity))

    await ds.insert(
        InventoryTransaction,
        [
            {
                "product_id": product_id,
                "store_id": source_store_id,
                "user_id": ctx.user_id,
                "quantity": -int(quantity),
                "type": "transfer_out",
                "notes": f"Transfer to {destination_store_id}: {notes}",
                "reference_id": transfer.id,
            },
            {
                "product_id": product_id,
                "store_id": destination_store_id,
                "user_id": ctx.user_id,
                "quantity": int(quantity),
                "type": "transfer_in",
                "notes": f"Transfer from {source_store_id}: {notes}",
                "reference_id": transfer.id,
            },
        ],
    )
    return transfer
