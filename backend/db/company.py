import uuid
from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Company(Base):
    """Tenant root. Every store, product, role and ledger row belongs to one company."""
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)

    subscription_tier = Column(Text, nullable=False, default="free")
    subscription_status = Column(Text, nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    stores = relationship("Store", back_populates="company", cascade="all, delete-orphan")
