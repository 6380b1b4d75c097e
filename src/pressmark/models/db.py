"""SQLAlchemy database models."""

from datetime import datetime
from pathlib import Path

from sqlalchemy import JSON, DateTime, String, func, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pressmark.config import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class StoredNode(Base):
    """A record created while sourcing, stored as its JSON form."""

    __tablename__ = "nodes"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    typename: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    parent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )


# Database engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def create_session_factory(
    database_url: str,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine for the given URL, ensure tables exist and return a session factory."""
    _ensure_sqlite_directory(database_url)
    engine = create_async_engine(database_url, echo=echo)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine, factory


async def init_db() -> None:
    """Initialize the database and create tables."""
    global _engine, _session_factory

    settings = get_settings()
    _engine, _session_factory = await create_session_factory(settings.database_url, echo=settings.debug)


async def close_db() -> None:
    """Close the database connection."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory, initializing the database if needed."""
    if _session_factory is None:
        await init_db()

    assert _session_factory is not None
    return _session_factory
