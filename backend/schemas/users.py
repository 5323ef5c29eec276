# fastapi-users schemas. company_id/role_id are read-only here: tenant and role
# assignment is an administrative operation, not self-service.
from typing import Optional
from uuid import UUID

from fastapi_users import schemas


class UserRead(schemas.BaseUser[UUID]):
    name: Optional[str] = None
    company_id: Optional[UUID] = None
    role_id: Optional[UUID] = None


class UserCreate(schemas.BaseUserCreate):
    name: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    name: Optional[str] = None
