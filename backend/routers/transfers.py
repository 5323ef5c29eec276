from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from core import ledger
from core.config import settings
from core.context import TenantContext, current_context, require
from core.errors import LedgerError, StoreError
from db.database import (
    get_async_session,
    StockTransfer as StockTransferModel,
    StockTransferItem as StockTransferItemModel,
    Store as StoreModel,
)
from db.datastore import Datastore, get_datastore
from routers.inventory import http_error
from schemas.transfers import TransferCreate, TransferDetail, TransferItemOut, TransferOut, TransferStatus

router = APIRouter()


def _serialize_transfer(t: StockTransferModel, source_name=None, destination_name=None) -> dict:
    return {
        **TransferOut.model_validate(t).model_dump(),
        "source_store_name": source_name,
        "destination_store_name": destination_name,
    }


def _serialize_item(it: StockTransferItemModel) -> TransferItemOut:
    p = getattr(it, "product", None)
    return TransferItemOut(
        id=it.id,
        product_id=it.product_id,
        quantity=int(it.quantity),
        product_name=getattr(p, "name", None) if p else None,
        sku=getattr(p, "sku", None) if p else None,
    )


def _with_store_names(stmt):
    Source = aliased(StoreModel)
    Destination = aliased(StoreModel)
    return (
        stmt.outerjoin(Source, StockTransferModel.source_store_id == Source.id)
        .outerjoin(Destination, StockTransferModel.destination_store_id == Destination.id)
        .add_columns(Source.name.label("source_name"), Destination.name.label("destination_name"))
    )


@router.post("/", response_model=TransferDetail, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: TransferCreate,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    """Create a pending transfer. Stock does not move until the transfer is completed."""
    require(ctx, "transfers.manage")
    try:
        transfer, items = await ledger.create_transfer(
            ds,
            ctx,
            source_store_id=payload.source_store_id,
            destination_store_id=payload.destination_store_id,
            items=payload.items,
            notes=payload.notes,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "create transfer")
    return TransferDetail(
        **_serialize_transfer(transfer),
        items=[TransferItemOut(id=it.id, product_id=it.product_id, quantity=int(it.quantity)) for it in items],
    )


@router.get("/", response_model=List[TransferOut])
async def list_transfers(
    source_store_id: Optional[UUID] = None,
    destination_store_id: Optional[UUID] = None,
    status_filter: Optional[TransferStatus] = Query(None, alias="status"),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = _with_store_names(select(StockTransferModel)).where(StockTransferModel.company_id == ctx.company_id)
    if source_store_id:
        stmt = stmt.where(StockTransferModel.source_store_id == source_store_id)
    if destination_store_id:
        stmt = stmt.where(StockTransferModel.destination_store_id == destination_store_id)
    if status_filter:
        stmt = stmt.where(StockTransferModel.status == status_filter)
    if from_date:
        stmt = stmt.where(StockTransferModel.transfer_date >= datetime.combine(from_date, time.min))
    if to_date:
        end_excl = datetime.combine(to_date, time.min) + timedelta(days=1)
        stmt = stmt.where(StockTransferModel.transfer_date < end_excl)

    res = await db.execute(stmt.order_by(StockTransferModel.transfer_date.desc()))
    return [TransferOut(**_serialize_transfer(t, src, dst)) for (t, src, dst) in res.all()]


@router.get("/{transfer_id}", response_model=TransferDetail)
async def get_transfer(
    transfer_id: UUID,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = (
        _with_store_names(select(StockTransferModel))
        .options(selectinload(StockTransferModel.items).selectinload(StockTransferItemModel.product))
        .where(StockTransferModel.id == transfer_id)
        .where(StockTransferModel.company_id == ctx.company_id)
    )
    row = (await db.execute(stmt)).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer not found")
    t, src, dst = row
    return TransferDetail(**_serialize_transfer(t, src, dst), items=[_serialize_item(it) for it in (t.items or [])])


@router.post("/{transfer_id}/complete", response_model=TransferOut)
async def complete_transfer(
    transfer_id: UUID,
    atomic: Optional[bool] = None,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    """
    Apply a pending transfer: take each item's quantity off the source store and credit
    the destination, then mark the transfer completed.

    Without `atomic` a failure part-way leaves earlier items applied and the transfer pending.
    """
    require(ctx, "transfers.manage")
    try:
        transfer = await ledger.complete_transfer(
            ds,
            ctx,
            transfer_id,
            atomic=settings.transfers_atomic if atomic is None else atomic,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "complete transfer")
    return TransferOut.model_validate(transfer)
