import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import UUID

from core.context import TenantContext
from core.errors import NOT_FOUND, LedgerError, StoreError
from core.ledger import apply_sale_decrement, ensure_products_owned
from db.database import Sale, SaleItem, Store as StoreModel
from db.datastore import Datastore


def _money(x) -> Decimal:
    if x is None:
        return Decimal("0")
    return Decimal(str(x)).quantize(Decimal("0.01"))


def _new_transaction_number() -> str:
    return f"TXN-{datetime.now(timezone.utc):%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6].upper()}"


def _item_values(item) -> dict:
    line = _money(item.unit_price) * int(item.quantity)
    tax = _money(getattr(item, "tax_amount", None))
    discount = _money(getattr(item, "discount_amount", None))
    expected = line + tax - discount
    total = getattr(item, "total_amount", None)
    if total is not None and _money(total) != expected:
        raise LedgerError(
            f"Item total {_money(total)} for product={item.product_id} does not match "
            f"unit_price * quantity + tax - discount = {expected}"
        )
    return {
        "product_id": item.product_id,
        "quantity": int(item.quantity),
        "unit_price": _money(item.unit_price),
        "tax_rate": _money(item.tax_rate) if getattr(item, "tax_rate", None) is not None else None,
        "tax_amount": tax,
        "discount_amount": discount,
        "total_amount": expected,
    }


async def create_sale(
    ds: Datastore,
    ctx: TenantContext,
    *,
    store_id: UUID,
    items: Sequence,
    customer_id: Optional[UUID] = None,
    payment_method: str = "cash",
    payment_reference: Optional[str] = None,
    transaction_number: Optional[str] = None,
    notes: Optional[str] = None,
    status: str = "completed",
) -> tuple[Sale, List[SaleItem]]:
    """Record a sale with its items, then take the sold quantities off the store's stock.

    Header totals are sums over the items; an item total that disagrees with its price,
    quantity, tax and discount is rejected. The stock decrement runs after both inserts;
    a failure there leaves the sale recorded.
    """
    await ds.get(StoreModel, {"id": store_id, "company_id": ctx.company_id}, single=True)
    await ensure_products_owned(ds, ctx, (it.product_id for it in items))

    item_values = [_item_values(it) for it in items]
    subtotal = sum((_money(v["unit_price"]) * v["quantity"] for v in item_values), Decimal("0"))
    tax = sum((v["tax_amount"] for v in item_values), Decimal("0"))
    discount = sum((v["discount_amount"] for v in item_values), Decimal("0"))
    total = sum((v["total_amount"] for v in item_values), Decimal("0"))

    sale = await ds.insert(
        Sale,
        {
            "company_id": ctx.company_id,
            "store_id": store_id,
            "user_id": ctx.user_id,
            "customer_id": customer_id,
            "transaction_number": transaction_number or _new_transaction_number(),
            "subtotal": subtotal,
            "tax_amount": tax,
            "discount_amount": discount,
            "total_amount": total,
            "payment_method": payment_method,
            "payment_reference": payment_reference,
            "status": status,
            "notes": notes,
        },
    )
    rows: List[SaleItem] = []
    if item_values:
        rows = await ds.insert(SaleItem, [dict(v, transaction_id=sale.id) for v in item_values])

    await apply_sale_decrement(ds, store_id, items)
    return sale, rows


async def update_sale_status(ds: Datastore, ctx: TenantContext, sale_id: UUID, status: str) -> Sale:
    rows = await ds.update(Sale, {"status": status}, {"id": sale_id, "company_id": ctx.company_id})
    if not rows:
        raise StoreError(f"Sale {sale_id} not found", code=NOT_FOUND)
    return rows[0]
