from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


TransferStatus = Literal["pending", "completed"]


class TransferItemIn(BaseModel):
    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v


class TransferCreate(BaseModel):
    source_store_id: UUID
    destination_store_id: UUID
    items: List[TransferItemIn]
    notes: Optional[str] = None

    @field_validator("items")
    @classmethod
    def _items_required(cls, v: List[TransferItemIn]) -> List[TransferItemIn]:
        if not v:
            raise ValueError("a transfer needs at least one item")
        return v

    @model_validator(mode="after")
    def _distinct_stores(self):
        if self.source_store_id == self.destination_store_id:
            raise ValueError("source and destination stores must differ")
        return self


class TransferItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    quantity: int
    product_name: Optional[str] = None
    sku: Optional[str] = None


class TransferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    source_store_id: UUID
    destination_store_id: UUID
    user_id: Optional[UUID] = None
    transfer_date: datetime
    status: TransferStatus
    notes: Optional[str] = None
    source_store_name: Optional[str] = None
    destination_store_name: Optional[str] = None


class TransferDetail(TransferOut):
    items: List[TransferItemOut] = []
