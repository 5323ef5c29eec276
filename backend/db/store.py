import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    is_main = Column(Boolean, nullable=False, default=False)
    status = Column(Text, nullable=False, default="active")

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    company = relationship("Company", back_populates="stores")
