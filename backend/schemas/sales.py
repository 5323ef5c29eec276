from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class SaleItemIn(BaseModel):
    product_id: UUID
    quantity: int
    unit_price: float
    tax_rate: Optional[float] = None
    tax_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    total_amount: Optional[float] = None

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("quantity must be > 0")
        return v

    @field_validator("unit_price")
    @classmethod
    def _price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("unit_price cannot be negative")
        return v

    @model_validator(mode="after")
    def _total_matches(self):
        if self.total_amount is None:
            return self
        cents = Decimal("0.01")
        expected = (
            Decimal(str(self.unit_price)).quantize(cents) * self.quantity
            + Decimal(str(self.tax_amount or 0)).quantize(cents)
            - Decimal(str(self.discount_amount or 0)).quantize(cents)
        )
        if Decimal(str(self.total_amount)).quantize(cents) != expected:
            raise ValueError(f"total_amount must equal unit_price * quantity + tax - discount ({expected})")
        return self


class SaleCreate(BaseModel):
    store_id: UUID
    items: List[SaleItemIn]
    customer_id: Optional[UUID] = None
    payment_method: str = "cash"
    payment_reference: Optional[str] = None
    transaction_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("items")
    @classmethod
    def _items_required(cls, v: List[SaleItemIn]) -> List[SaleItemIn]:
        if not v:
            raise ValueError("a sale needs at least one item")
        return v


class SaleStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("status is required")
        return v


class SaleItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID] = None
    quantity: int
    unit_price: float
    tax_rate: Optional[float] = None
    tax_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    total_amount: float
    product_name: Optional[str] = None
    sku: Optional[str] = None


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    store_id: UUID
    user_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    transaction_number: str
    transaction_date: datetime
    subtotal: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    payment_method: str
    payment_reference: Optional[str] = None
    status: str
    notes: Optional[str] = None


class SaleDetail(SaleOut):
    items: List[SaleItemOut] = []
