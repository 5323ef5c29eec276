from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


InventoryTransactionType = Literal["stock_in", "stock_out", "transfer_in", "transfer_out"]


def _strip_nullable(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class StockRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    store_id: UUID
    quantity: int
    low_stock_threshold: int
    is_low_stock: bool


class StoreInventoryRow(StockRecordOut):
    product_name: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None


class ProductInventoryRow(StockRecordOut):
    store_name: Optional[str] = None


class InventoryTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    store_id: UUID
    user_id: Optional[UUID] = None
    type: InventoryTransactionType
    quantity: int
    notes: Optional[str] = None
    reason: Optional[str] = None
    supplier_id: Optional[UUID] = None
    unit_cost: Optional[float] = None
    reference_id: Optional[UUID] = None
    transaction_date: datetime
    product_name: Optional[str] = None
    store_name: Optional[str] = None


class StockAdjustmentOut(BaseModel):
    inventory: StockRecordOut
    transaction: InventoryTransactionOut


class StockInRequest(BaseModel):
    product_id: UUID
    store_id: UUID
    quantity: int
    notes: str = ""
    supplier_id: Optional[UUID] = None
    unit_cost: Optional[float] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("unit_cost")
    @classmethod
    def _unit_cost(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("unit_cost cannot be negative")
        return v


class StockOutRequest(BaseModel):
    product_id: UUID
    store_id: UUID
    quantity: int
    notes: str = ""
    reason: str = "adjustment"

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        return _strip_nullable(v) or "adjustment"


class StockTransferRequest(BaseModel):
    """Immediate single-product move between two stores."""
    product_id: UUID
    source_store_id: UUID
    destination_store_id: UUID
    quantity: int
    notes: str = ""

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v
