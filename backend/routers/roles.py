from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import permissions
from core.context import TenantContext, current_context, require
from core.errors import LedgerError, StoreError
from db.database import (
    get_async_session,
    Permission as PermissionModel,
    Role as RoleModel,
    RolePermission as RolePermissionModel,
)
from db.datastore import Datastore, get_datastore
from routers.inventory import http_error
from schemas.roles import PermissionOut, RolePermissionsOut, RolePermissionsUpdate

router = APIRouter()


async def _role_or_404(ds: Datastore, ctx: TenantContext, role_id: UUID) -> RoleModel:
    try:
        return await ds.get(RoleModel, {"id": role_id, "company_id": ctx.company_id}, single=True)
    except StoreError as e:
        raise http_error(e, "load role")


async def _role_permissions(db: AsyncSession, role_id: UUID) -> RolePermissionsOut:
    res = await db.execute(
        select(PermissionModel)
        .join(RolePermissionModel, RolePermissionModel.permission_id == PermissionModel.id)
        .where(RolePermissionModel.role_id == role_id)
        .order_by(PermissionModel.name.asc())
    )
    return RolePermissionsOut(
        role_id=role_id,
        permissions=[PermissionOut.model_validate(p) for p in res.scalars().all()],
    )


@router.get("/{role_id}/permissions", response_model=RolePermissionsOut)
async def get_role_permissions(
    role_id: UUID,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
    db: AsyncSession = Depends(get_async_session),
):
    await _role_or_404(ds, ctx, role_id)
    return await _role_permissions(db, role_id)


@router.put("/{role_id}/permissions", response_model=RolePermissionsOut)
async def update_role_permissions(
    role_id: UUID,
    payload: RolePermissionsUpdate,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
    db: AsyncSession = Depends(get_async_session),
):
    """Replace the role's permission set: adds the missing ids and removes the rest."""
    require(ctx, "roles.manage")
    await _role_or_404(ds, ctx, role_id)
    try:
        await permissions.reconcile_permissions(ds, role_id, payload.permission_ids)
    except StoreError as e:
        raise http_error(e, "update role permissions")
    return await _role_permissions(db, role_id)


@router.post("/{role_id}/permissions/{permission_id}", response_model=RolePermissionsOut, status_code=status.HTTP_201_CREATED)
async def add_permission_to_role(
    role_id: UUID,
    permission_id: UUID,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
    db: AsyncSession = Depends(get_async_session),
):
    require(ctx, "roles.manage")
    await _role_or_404(ds, ctx, role_id)
    try:
        await permissions.add_permission_to_role(ds, role_id, permission_id)
    except (StoreError, LedgerError) as e:
        raise http_error(e, "add permission to role")
    return await _role_permissions(db, role_id)


@router.delete("/{role_id}/permissions/{permission_id}", response_model=RolePermissionsOut)
async def remove_permission_from_role(
    role_id: UUID,
    permission_id: UUID,
    ctx: TenantContext = Depends(current_context),
    ds: Datastore = Depends(get_datastore),
    db: AsyncSession = Depends(get_async_session),
):
    require(ctx, "roles.manage")
    await _role_or_404(ds, ctx, role_id)
    try:
        await permissions.remove_permission_from_role(ds, role_id, permission_id)
    except StoreError as e:
        raise http_error(e, "remove permission from role")
    return await _role_permissions(db, role_id)
