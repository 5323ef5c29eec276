import logging
from typing import Iterable, Set
from uuid import UUID

from core.errors import DuplicatePermissionError
from db.database import RolePermission
from db.datastore import Datastore

logger = logging.getLogger(__name__)


async def get_role_permission_ids(ds: Datastore, role_id: UUID) -> Set[UUID]:
    rows = await ds.get(RolePermission, {"role_id": role_id})
    return {r.permission_id for r in rows}


async def add_permission_to_role(ds: Datastore, role_id: UUID, permission_id: UUID) -> RolePermission:
    if permission_id in await get_role_permission_ids(ds, role_id):
        raise DuplicatePermissionError(role_id, permission_id)
    return await ds.insert(RolePermission, {"role_id": role_id, "permission_id": permission_id})


async def remove_permission_from_role(ds: Datastore, role_id: UUID, permission_id: UUID) -> bool:
    return await ds.delete(RolePermission, {"role_id": role_id, "permission_id": permission_id})


async def reconcile_permissions(ds: Datastore, role_id: UUID, desired_permission_ids: Iterable[UUID]) -> None:
    """
    Make a role's permission set equal to `desired_permission_ids`.

    One batch insert for the missing ids, one delete per surplus id. Not transactional:
    if a later write fails, the earlier ones stay applied. Calling it again with the
    same set issues no writes.
    """
    desired = set(desired_permission_ids)
    current = await get_role_permission_ids(ds, role_id)

    to_add = desired - current
    to_remove = current - desired

    if to_add:
        await ds.insert(
            RolePermission,
            [{"role_id": role_id, "permission_id": pid} for pid in sorted(to_add, key=str)],
        )
    for pid in sorted(to_remove, key=str):
        await remove_permission_from_role(ds, role_id, pid)

    if to_add or to_remove:
        logger.info("Role %s permissions: +%d -%d", role_id, len(to_add), len(to_remove))
