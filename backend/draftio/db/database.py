from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from draftio.core.config import settings

# Base class for models
Base = declarative_base()


def async_database_url(url: str) -> str:
    """Map the plain driver URLs deployments tend to set onto async drivers."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = async_database_url(url)
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        # Every pooled connection would otherwise get its own empty database
        kwargs["poolclass"] = StaticPool
    return create_async_engine(url, echo=echo, **kwargs)


async_engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine = None):
    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
