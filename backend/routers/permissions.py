from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.context import TenantContext, current_context
from db.database import get_async_session, Permission as PermissionModel
from schemas.roles import PermissionOut

router = APIRouter()


@router.get("/", response_model=List[PermissionOut])
async def list_permissions(
    ctx: TenantContext = Depends(current_context),
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(PermissionModel).order_by(PermissionModel.name.asc()))
    return [PermissionOut.model_validate(p) for p in res.scalars().all()]
