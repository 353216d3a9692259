import os

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

from gym_posture.config import settings


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str) -> AsyncEngine:
    url = normalize_database_url(url)
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_async_engine(url, echo=False, pool_size=5, max_overflow=10, pool_pre_ping=True)

    database = parsed.database
    if not database or database == ":memory:":
        # every connection would otherwise get its own empty database
        engine = create_async_engine(url, echo=False, poolclass=StaticPool)
    else:
        directory = os.path.dirname(database)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # aiosqlite connections are bound to the loop that opened them
        engine = create_async_engine(url, echo=False, poolclass=NullPool)
    _enable_sqlite_foreign_keys(engine)
    return engine


engine = build_engine(settings.database_url)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def create_tables(bind: AsyncEngine | None = None):
    async with (bind or engine).begin() as conn:
        from gym_posture.models import customer, lesson, posture  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create the schema and the seed customers."""
    from gym_posture.seed import seed_data

    await create_tables()
    async with async_session() as session:
        await seed_data(session)


async def get_db():
    async with async_session() as session:
        yield session
