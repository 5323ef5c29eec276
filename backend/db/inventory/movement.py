import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # 'stock_in' | 'stock_out' | 'transfer_in' | 'transfer_out'
    type = Column(Text, nullable=False, index=True)
    # signed: negative for stock leaving the store
    quantity = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    unit_cost = Column(Numeric(12, 2), nullable=True)
    # stock_transfers.id for transfer_in/transfer_out rows
    reference_id = Column(Uuid, nullable=True, index=True)

    transaction_date = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    product = relationship("Product")
    store = relationship("Store")
