"""
Row-level access to the relational store.

Every ledger operation talks to the database through `Datastore`: equality-filtered
get/insert/update/delete, each committed on its own unless a `transaction()` block
is open. Backend failures surface as `StoreError`; nothing is retried here.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type, TypeVar, Union

from fastapi import Depends
from sqlalchemy import delete as sa_delete, select, update as sa_update
from sqlalchemy.exc import MultipleResultsFound, NoResultFound, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import MULTIPLE, NOT_FOUND, StoreError
from db.database import Base, get_async_session

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)
Filters = Optional[Dict[str, Any]]


def _where(model: Type[M], filters: Filters) -> list:
    conds = []
    for field, value in (filters or {}).items():
        col = getattr(model, field)
        conds.append(col.is_(None) if value is None else col == value)
    return conds


class Datastore:
    def __init__(self, session: AsyncSession):
        self.session = session
        self._in_transaction = False

    async def _persist(self) -> None:
        if self._in_transaction:
            await self.session.flush()
        else:
            await self.session.commit()

    async def _fail(self, exc: SQLAlchemyError, action: str, model: Type[M]) -> None:
        # Outside a transaction() block the failed write is discarded so the
        # session stays usable; inside, the block's rollback handles it.
        if not self._in_transaction:
            await self.session.rollback()
        logger.debug("%s on %s failed: %r", action, model.__tablename__, exc)
        raise StoreError(str(getattr(exc, "orig", None) or exc)) from exc

    async def get(
        self,
        model: Type[M],
        filters: Filters = None,
        single: bool = False,
        order_by: Optional[Sequence[Any]] = None,
    ) -> Union[M, List[M]]:
        stmt = select(model).where(*_where(model, filters))
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        try:
            res = await self.session.execute(stmt)
            if single:
                return res.scalar_one()
            return list(res.scalars().all())
        except NoResultFound as e:
            raise StoreError(f"No {model.__tablename__} row matches {filters}", code=NOT_FOUND) from e
        except MultipleResultsFound as e:
            raise StoreError(f"More than one {model.__tablename__} row matches {filters}", code=MULTIPLE) from e
        except SQLAlchemyError as e:
            await self._fail(e, "get", model)

    async def find(self, model: Type[M], filters: Filters = None) -> Optional[M]:
        """Single-row fetch that returns None instead of raising when nothing matches."""
        try:
            return await self.get(model, filters, single=True)
        except StoreError as e:
            if e.is_not_found:
                return None
            raise

    async def insert(
        self, model: Type[M], values: Union[Dict[str, Any], List[Dict[str, Any]]]
    ) -> Union[M, List[M]]:
        many = isinstance(values, list)
        rows = [model(**v) for v in (values if many else [values])]
        try:
            self.session.add_all(rows)
            await self._persist()
            for r in rows:
                await self.session.refresh(r)
        except SQLAlchemyError as e:
            await self._fail(e, "insert", model)
        return rows if many else rows[0]

    async def update(self, model: Type[M], patch: Dict[str, Any], filters: Filters) -> List[M]:
        stmt = (
            sa_update(model)
            .where(*_where(model, filters))
            .values(**patch)
            .returning(model)
        )
        try:
            res = await self.session.execute(stmt)
            rows = list(res.scalars().all())
            await self._persist()
        except SQLAlchemyError as e:
            await self._fail(e, "update", model)
        return rows

    async def delete(self, model: Type[M], filters: Filters) -> bool:
        try:
            await self.session.execute(sa_delete(model).where(*_where(model, filters)))
            await self._persist()
        except SQLAlchemyError as e:
            await self._fail(e, "delete", model)
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Datastore"]:
        """Defer commits until the block exits; roll every write back on error."""
        if self._in_transaction:
            yield self
            return
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            await self.session.rollback()
            raise
        else:
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise StoreError(str(getattr(e, "orig", None) or e)) from e
        finally:
            self._in_transaction = False


async def get_datastore(db: AsyncSession = Depends(get_async_session)) -> Datastore:
    return Datastore(db)
