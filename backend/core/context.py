from dataclasses import dataclass, field
from typing import FrozenSet, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session, Permission as PermissionModel, Role as RoleModel, RolePermission as RolePermissionModel
from db.users import User


@dataclass(frozen=True)
class TenantContext:
    """Who is calling and which company they act for. Passed explicitly into ledger calls."""
    user_id: UUID
    company_id: UUID
    role: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    is_superuser: bool = False

    def can(self, permission: str) -> bool:
        return self.is_superuser or permission in self.permissions


async def current_context(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
) -> TenantContext:
    if user.company_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not attached to a company")

    role_name = None
    perms: FrozenSet[str] = frozenset()
    if user.role_id is not None:
        role = (await db.execute(select(RoleModel).where(RoleModel.id == user.role_id))).scalar_one_or_none()
        if role is not None:
            role_name = role.name
            res = await db.execute(
                select(PermissionModel.name)
                .join(RolePermissionModel, RolePermissionModel.permission_id == PermissionModel.id)
                .where(RolePermissionModel.role_id == role.id)
            )
            perms = frozenset(res.scalars().all())

    return TenantContext(
        user_id=user.id,
        company_id=user.company_id,
        role=role_name,
        permissions=perms,
        is_superuser=bool(user.is_superuser),
    )


def require(ctx: TenantContext, permission: str) -> None:
    if not ctx.can(permission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
