from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.database_echo)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


# Register every model on Base.metadata; routers import models from here.
from .company import Company  # noqa: E402,F401
from .store import Store  # noqa: E402,F401
from .product import Product  # noqa: E402,F401
from .supplier import Supplier  # noqa: E402,F401
from .role import Role, Permission, RolePermission  # noqa: E402,F401
from .users import User  # noqa: E402,F401
from .sale import Sale, SaleItem  # noqa: E402,F401
from .inventory import (  # noqa: E402,F401
    InventoryTransaction,
    StockRecord,
    StockTransfer,
    StockTransferItem,
)
