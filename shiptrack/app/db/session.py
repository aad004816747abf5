"""
Database session configuration.

One async engine per process. PostgreSQL (asyncpg) in deployment; SQLite
(aiosqlite) URLs are accepted for local runs and tests, which take no pool
sizing arguments.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from shiptrack.app.core.config import settings


def build_engine(database_url: str, **overrides) -> AsyncEngine:
    """
    Create an async engine with options suited to the URL's backend.

    Keyword overrides are passed straight to ``create_async_engine``.
    """
    options = {"echo": settings.db_echo, "future": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    options.update(overrides)
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Instances stay readable after commit; shipment responses are built from them
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(engine)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    One session per request; closed when the response is sent.
    """
    async with AsyncSessionLocal() as session:
        yield session
