from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None


class RolePermissionsUpdate(BaseModel):
    permission_ids: List[UUID]


class RolePermissionsOut(BaseModel):
    role_id: UUID
    permissions: List[PermissionOut]
