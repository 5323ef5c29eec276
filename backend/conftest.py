import os
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TRANSFERS_ATOMIC"] = "False"

from core.context import TenantContext  # noqa: E402
from db.database import Base, Company, Product, Store  # noqa: E402
from db.datastore import Datastore  # noqa: E402
from db.inventory import StockRecord  # noqa: E402

ALL_PERMISSIONS = frozenset({"inventory.manage", "transfers.manage", "sales.create", "roles.manage"})


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture()
def ds(session):
    return Datastore(session)


@pytest.fixture()
async def seed(session):
    """One company with two stores and two products, plus a second company with one store and one product."""
    company = Company(name="Acme Retail")
    other = Company(name="Other Co")
    session.add_all([company, other])
    await session.flush()

    main_store = Store(company_id=company.id, name="Main Street", is_main=True)
    mall_store = Store(company_id=company.id, name="Mall")
    foreign_store = Store(company_id=other.id, name="Elsewhere")
    soap = Product(company_id=company.id, name="Soap", sku="SOAP-1", price=2.5)
    towel = Product(company_id=company.id, name="Towel", sku="TWL-1", price=4)
    widget = Product(company_id=other.id, name="Secret Widget", sku="SECRET-9", price=9)
    session.add_all([main_store, mall_store, foreign_store, soap, towel, widget])
    await session.commit()

    # plain ids only: a rollback expires ORM instances
    return SimpleNamespace(
        company_id=company.id,
        other_company_id=other.id,
        store_a=main_store.id,
        store_b=mall_store.id,
        foreign_store=foreign_store.id,
        product=soap.id,
        product2=towel.id,
        foreign_product=widget.id,
    )


@pytest.fixture()
def ctx(seed):
    return TenantContext(
        user_id=uuid.uuid4(),
        company_id=seed.company_id,
        role="manager",
        permissions=ALL_PERMISSIONS,
    )


@pytest.fixture()
def put_stock(session):
    async def _put(product_id, store_id, quantity):
        session.add(StockRecord(product_id=product_id, store_id=store_id, quantity=quantity))
        await session.commit()

    return _put


@pytest.fixture()
def qty(session):
    """Current quantity straight from the table, or None when there is no record."""

    async def _qty(product_id, store_id):
        res = await session.execute(
            select(StockRecord.quantity)
            .where(StockRecord.product_id == product_id)
            .where(StockRecord.store_id == store_id)
        )
        return res.scalar_one_or_none()

    return _qty
