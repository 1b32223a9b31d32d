from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from tutorsched.core.config import settings


def build_engine(url: str) -> AsyncEngine:
    """Async engine for the audit store. SQLite files skip the server-side pool tuning."""
    if make_url(url).get_backend_name() == "sqlite":
        return create_async_engine(url, echo=False, future=True)
    # pool_pre_ping: check connection is alive before use.
    # pool_recycle: discard connections after this many seconds to avoid stale connections.
    return create_async_engine(url, echo=False, future=True, pool_pre_ping=True, pool_recycle=300)


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
