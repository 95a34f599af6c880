import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from loguru import logger
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine,
    async_scoped_session,
)

from checksum_sync.services.exceptions import StoreUnavailable


def get_db_url(db_path: Path) -> str:
    """Get SQLAlchemy URL for a fingerprint database file."""
    return f"sqlite+aiosqlite:///{db_path}"


def enable_wal(engine: AsyncEngine) -> None:
    """Put every new connection in WAL mode.

    Readers then never wait for the single writer, which lets tasks running in
    parallel look up fingerprints while another task records one.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def get_scoped_session_factory(
    session_maker: async_sessionmaker[AsyncSession],
) -> async_scoped_session:
    """Create a scoped session factory scoped to current task."""
    return async_scoped_session(session_maker, scopefunc=asyncio.current_task)


@asynccontextmanager
async def scoped_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a scoped session for one write transaction.

    The session is committed when the block exits normally and rolled back
    on any exception.

    Args:
        session_maker: Session maker to create scoped sessions from
    """
    factory = get_scoped_session_factory(session_maker)
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
        await factory.remove()


@asynccontextmanager
async def engine_session_factory(
    db_path: Path,
    timeout: float = 30.0,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Create engine and session factory for the fingerprint database.

    Args:
        db_path: SQLite database file, parent directories are created
        timeout: Seconds to wait on a locked database before failing

    Raises:
        StoreUnavailable: If the database directory cannot be created
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StoreUnavailable(f"Cannot create database directory {db_path.parent}: {e}") from e

    db_url = get_db_url(db_path)
    logger.debug(f"Creating engine for db_url: {db_url}")
    engine = create_async_engine(
        db_url, connect_args={"check_same_thread": False, "timeout": timeout}
    )
    enable_wal(engine)
    try:
        factory = async_sessionmaker(engine, expire_on_commit=False)
        yield engine, factory
    finally:
        try:
            await engine.dispose()
        except SQLAlchemyError as e:
            logger.warning(f"Failed to dispose database engine: {e}")
