from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from craftlink.db.utils import _is_memory_sqlite, _normalize_db_url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = _normalize_db_url(url)
    if _is_memory_sqlite(url):
        # one shared connection, otherwise every checkout sees its own empty database
        return create_async_engine(url, echo=echo, poolclass=StaticPool,
                                   connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=echo)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
