from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core import sales
from core.context import TenantContext, current_context, require
from core.errors import LedgerError, StoreError
from db.database import get_async_session, Sale as SaleModel, SaleItem as SaleItemModel
from db.datastore import Datastore, get_datastore
from routers.inventory import http_error
from schemas.sales import SaleCreate, SaleDetail, SaleItemOut, SaleOut, SaleStatusUpdate

router = APIRouter()


def _f(x) -> Optional[float]:
    return float(x) if x is not None else None


def _serialize_sale(s: SaleModel) -> dict:
    return {
        "id": s.id,
        "company_id": s.company_id,
        "store_id": s.store_id,
        "user_id": s.user_id,
        "customer_id": s.customer_id,
        "transaction_number": s.transaction_number,
        "transaction_date": s.transaction_date,
        "subtotal": float(s.subtotal or 0),
        "tax_amount": float(s.tax_amount or 0),
        "discount_amount": float(s.discount_amount or 0),
        "total_amount": float(s.total_amount or 0),
        "payment_method": s.payment_method,
        "payment_reference": s.payment_reference,
        "status": s.status,
        "notes": s.notes,
    }


def _serialize_item(it: SaleItemModel, product=None) -> SaleItemOut:
    return SaleItemOut(
        id=it.id,
        product_id=it.product_id,
        quantity=int(it.quantity),
        unit_price=float(it.unit_price),
        tax_rate=_f(it.tax_rate),
        tax_amount=_f(it.tax_amount),
        discount_amount=_f(it.discount_amount),
        total_amount=float(it.total_amount),
        product_name=getattr(product, "name", None) if product else None,
        sku=getattr(product, "sku", None) if product else None,
    )


@router.post("/", response_model=SaleDetail, status_code=status.HTTP_201_CREATED)
async def create_sale(
    payload: SaleCreate,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    """Record a sale and take its quantities off the store's stock."""
    require(ctx, "sales.create")
    try:
        sale, items = await sales.create_sale(
            ds,
            ctx,
            store_id=payload.store_id,
            items=payload.items,
            customer_id=payload.customer_id,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
            transaction_number=payload.transaction_number,
            notes=payload.notes,
        )
    except (StoreError, LedgerError) as e:
        raise http_error(e, "create sale")
    return SaleDetail(**_serialize_sale(sale), items=[_serialize_item(it) for it in items])


@router.get("/", response_model=List[SaleOut])
async def list_sales(
    store_id: Optional[UUID] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = Query(200, ge=1, le=1000),
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(SaleModel).where(SaleModel.company_id == ctx.company_id)
    if store_id:
        stmt = stmt.where(SaleModel.store_id == store_id)
    if status_filter:
        stmt = stmt.where(SaleModel.status == status_filter)
    if customer_id:
        stmt = stmt.where(SaleModel.customer_id == customer_id)
    if from_date:
        stmt = stmt.where(SaleModel.transaction_date >= datetime.combine(from_date, time.min))
    if to_date:
        stmt = stmt.where(SaleModel.transaction_date < datetime.combine(to_date, time.min) + timedelta(days=1))
    res = await db.execute(stmt.order_by(SaleModel.transaction_date.desc()).limit(limit))
    return [SaleOut(**_serialize_sale(s)) for s in res.scalars().all()]


@router.get("/{sale_id}", response_model=SaleDetail)
async def get_sale(
    sale_id: UUID,
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(
        select(SaleModel)
        .options(selectinload(SaleModel.items).selectinload(SaleItemModel.product))
        .where(SaleModel.id == sale_id)
        .where(SaleModel.company_id == ctx.company_id)
    )
    s = res.scalar_one_or_none()
    if not s:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sale not found")
    return SaleDetail(**_serialize_sale(s), items=[_serialize_item(it, it.product) for it in (s.items or [])])


@router.patch("/{sale_id}/status", response_model=SaleOut)
async def update_sale_status(
    sale_id: UUID,
    payload: SaleStatusUpdate,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
):
    require(ctx, "sales.create")
    try:
        sale = await sales.update_sale_status(ds, ctx, sale_id, payload.status)
    except StoreError as e:
        raise http_error(e, "update sale status")
    return SaleOut(**_serialize_sale(sale))
