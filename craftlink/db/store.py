from typing import Any, Optional, Sequence, Type, TypeVar
from sqlalchemy import delete, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from craftlink.common.logging_setup import get_logger

logger = get_logger("craftlink.db")

M = TypeVar("M", bound=SQLModel)


class RecordStore:
    """
    Persistent find / create / update / delete over the table models.
    Every call runs in its own short session , callers never hold a transaction open
    across an await on something else.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_id(self, model: Type[M], record_id: Any) -> Optional[M]:
        async with self._session_factory() as session:
            return await session.get(model, record_id)

    async def find_one(self, model: Type[M], *where, order_by: Sequence[Any] = ()) -> Optional[M]:
        stmt = select(model).where(*where)
        if order_by:
            stmt = stmt.order_by(*order_by)
        async with self._session_factory() as session:
            res = await session.execute(stmt.limit(1))
            return res.scalars().first()

    async def find_where(self, model: Type[M], *where, order_by: Sequence[Any] = (),
                         limit: Optional[int] = None) -> list[M]:
        stmt = select(model).where(*where)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            res = await session.execute(stmt)
            return list(res.scalars().all())

    async def count(self, model: Type[M], *where) -> int:
        stmt = select(func.count()).select_from(model).where(*where)
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def create(self, record: M) -> M:
        async with self._session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
            logger.debug("store.created", extra={"table": record.__tablename__})
            return record

    async def update(self, model: Type[M], record_id: Any, **values) -> Optional[M]:
        async with self._session_factory() as session:
            record = await session.get(model, record_id)
            if record is None:
                return None
            for field, value in values.items():
                setattr(record, field, value)
            await session.commit()
            await session.refresh(record)
            return record

    async def delete(self, model: Type[M], record_id: Any) -> bool:
        async with self._session_factory() as session:
            record = await session.get(model, record_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
            return True

    async def delete_where(self, model: Type[M], *where) -> int:
        async with self._session_factory() as session:
            res = await session.execute(delete(model).where(*where))
            await session.commit()
            return res.rowcount or 0

    async def ping(self) -> bool:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
