from typing import Optional


NOT_FOUND = "not_found"
MULTIPLE = "multiple"
CONFLICT = "conflict"


class StoreError(Exception):
    """A datastore call failed.

    `code` is NOT_FOUND / MULTIPLE for single-row fetches, CONFLICT when a
    compare-and-swap write matched nothing, and None for backend failures
    (constraint violations, connection errors).
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND


class LedgerError(ValueError):
    """A ledger operation was called with arguments that violate its preconditions."""


class InsufficientStockError(LedgerError):
    def __init__(self, available: int, requested: int, where: str = ""):
        self.available = available
        self.requested = requested
        msg = f"Not enough stock available{(' in ' + where) if where else ''}. Available={available} requested={requested}"
        super().__init__(msg)


class TransferStateError(LedgerError):
    pass


class DuplicatePermissionError(LedgerError):
    def __init__(self, role_id, permission_id):
        self.role_id = role_id
        self.permission_id = permission_id
        super().__init__(f"Role {role_id} already has permission {permission_id}")
