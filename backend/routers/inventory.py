import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.context import TenantContext, current_context, require
from core.errors import CONFLICT, NOT_FOUND, LedgerError, StoreError
from db.database import (
    get_async_session,
    InventoryTransaction as InventoryTransactionModel,
    Product as ProductModel,
    StockRecord as StockRecordModel,
    Store as StoreModel,
)
from db.datastore import Datastore, get_datastore
from schemas.inventory import (
    InventoryTransactionOut,
    InventoryTransactionType,
    ProductInventoryRow,
    StockAdjustmentOut,
    StockInRequest,
    StockOutRequest,
    StockRecordOut,
    StockTransferRequest,
    StoreInventoryRow,
)
from schemas.transfers import TransferOut

logger = logging.getLogger(__name__)

router = APIRouter()


def http_error(e: Exception, action: str) -> HTTPException:
    """Translate a ledger/datastore failure into the response the caller should see."""
    if isinstance(e, StoreError) and e.code == NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, StoreError) and e.code == CONFLICT:
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    if isinstance(e, LedgerError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.exception("[%s] failed", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {getattr(e, 'message', None) or e}",
    )


def _stock_out(rec: StockRecordModel) -> dict:
    return StockRecordOut.model_validate(rec).model_dump()


def _movement_out(mv: InventoryTransactionModel, product_name=None, store_name=None) -> InventoryTransactionOut:
    return InventoryTransactionOut(
        id=mv.id,
        product_id=mv.product_id,
        store_id=mv.store_id,
        user_id=mv.user_id,
        type=mv.type,
        quantity=int(mv.quantity),
        notes=mv.notes,
        reason=mv.reason,
        supplier_id=mv.supplier_id,
        unit_cost=float(mv.unit_cost) if mv.unit_cost is not None else None,
        reference_id=mv.reference_id,
        transaction_date=mv.transaction_date,
        product_name=product_name,
        store_name=store_name,
    )


@router.get("/stores/{store_id}", response_model=List[StoreInventoryRow])
async def get_store_inventory(
    store_id: UUID,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Stock of every product held at one store."""
    stmt = (
        select(StockRecordModel, ProductModel.name, ProductModel.sku, ProductModel.barcode)
        .join(ProductModel, StockRecordModel.product_id == ProductModel.id)
        .join(StoreModel, StockRecordModel.store_id == StoreModel.id)
        .where(StockRecordModel.store_id == store_id)
        .where(StoreModel.company_id == ctx.company_id)
        .order_by(ProductModel.name.asc())
    )
    res = await db.execute(stmt)
    return [
        StoreInventoryRow(**_stock_out(rec), product_name=name, sku=sku, barcode=barcode)
        for (rec, name, sku, barcode) in res.all()
    ]


@router.get("/products/{product_id}", response_model=List[ProductInventoryRow])
async def get_product_inventory(
    product_id: UUID,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    """Stock of one product across the company's stores."""
    stmt = (
        select(StockRecordModel, StoreModel.name)
        .join(StoreModel, StockRecordModel.store_id == StoreModel.id)
        .where(StockRecordModel.product_id == product_id)
        .where(StoreModel.company_id == ctx.company_id)
        .order_by(StoreModel.name.asc())
    )
    res = await db.execute(stmt)
    return [ProductInventoryRow(**_stock_out(rec), store_name=store_name) for (rec, store_name) in res.all()]


@router.get("/low-stock", response_model=List[StoreInventoryRow])
async def get_low_stock(
    store_id: Optional[UUID] = None,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(StockRecordModel, ProductModel.name, ProductModel.sku, ProductModel.barcode)
        .join(ProductModel, StockRecordModel.product_id == ProductModel.id)
        .join(StoreModel, StockRecordModel.store_id == StoreModel.id)
        .where(StoreModel.company_id == ctx.company_id)
        .where(StockRecordModel.quantity <= StockRecordModel.low_stock_threshold)
    )
    if store_id:
        stmt = stmt.where(StockRecordModel.store_id == store_id)
    res = await db.execute(stmt.order_by(StockRecordModel.quantity.asc(), ProductModel.name.asc()))
    return [
        StoreInventoryRow(**_stock_out(rec), product_name=name, sku=sku, barcode=barcode)
        for (rec, name, sku, barcode) in res.all()
    ]


@router.get("/transactions", response_model=List[InventoryTransactionOut])
async def list_inventory_transactions(
    store_id: Optional[UUID] = None,
    product_id: Optional[UUID] = None,
    type: Optional[InventoryTransactionType] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = Query(200, ge=1, le=1000),
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        select(InventoryTransactionModel, ProductModel.name, StoreModel.name)
        .join(ProductModel, InventoryTransactionModel.product_id == ProductModel.id)
        .join(StoreModel, InventoryTransactionModel.store_id == StoreModel.id)
        .where(StoreModel.company_id == ctx.company_id)
    )
    if store_id:
        stmt = stmt.where(InventoryTransactionModel.store_id == store_id)
    if product_id:
        stmt = stmt.where(InventoryTransactionModel.product_id == product_id)
    if type:
        stmt = stmt.where(InventoryTransactionModel.type == type)
    if from_date:
        stmt = stmt.where(InventoryTransactionModel.transaction_date >= datetime.combine(from_date, time.min))
    if to_date:
        end_excl = datetime.combine(to_date, time.min) + timedelta(days=1)
        stmt = stmt.where(InventoryTransactionModel.transaction_date < end_excl)

    stmt = stmt.order_by(InventoryTransactionModel.transaction_date.desc()).limit(limit)
    res = await db.execute(stmt)
    return [_movement_out(mv, product_name, store_name) for (mv, product_name, store_name) in res.all()]


@router.post("/stock-in", response_model=StockAdjustmentOut, status_code=status.HTTP_201_CREATED)
async def stock_in(
    payload: StockInRequest,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    require(ctx, "inventory.manage")
    try:
        out = await ledger.add_stock(
            ds,
            ctx,
            product_id=payload.product_id,
            store_id=payload.store_id,
            quantity=payload.quantity,
            notes=payload.notes,
            supplier_id=payload.supplier_id,
            unit_cost=payload.unit_cost,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "add stock")
    return StockAdjustmentOut(inventory=_stock_out(out["inventory"]), transaction=_movement_out(out["transaction"]))


@router.post("/stock-out", response_model=StockAdjustmentOut, status_code=status.HTTP_201_CREATED)
async def stock_out(
    payload: StockOutRequest,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    require(ctx, "inventory.manage")
    try:
        out = await ledger.remove_stock(
            ds,
            ctx,
            product_id=payload.product_id,
            store_id=payload.store_id,
            quantity=payload.quantity,
            notes=payload.notes,
            reason=payload.reason,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "remove stock")
    return StockAdjustmentOut(inventory=_stock_out(out["inventory"]), transaction=_movement_out(out["transaction"]))


@router.post("/transfer", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
async def transfer_stock(
    payload: StockTransferRequest,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    """
    Move one product between two stores right away.

    - The source store must already hold at least `quantity`.
    - Records a completed transfer and a transfer_out / transfer_in pair in the stock log.
    """
    require(ctx, "transfers.manage")
    try:
        transfer = await ledger.transfer_stock(
            ds,
            ctx,
            product_id=payload.product_id,
            source_store_id=payload.source_store_id,
            destination_store_id=payload.destination_store_id,
            quantity=payload.quantity,
            notes=payload.notes,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "transfer stock")
    return TransferOut.model_validate(transfer)
