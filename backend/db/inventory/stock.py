import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class StockRecord(Base):
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "store_id", name="ux_inventory_product_store"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)

    # May go negative: the ledger does not floor at zero.
    quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    product = relationship("Product")
    store = relationship("Store")

    @property
    def is_low_stock(self) -> bool:
        return int(self.quantity or 0) <= int(self.low_stock_threshold or 0)
