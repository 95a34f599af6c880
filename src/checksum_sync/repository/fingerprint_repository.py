"""Repository for per-task file fingerprints."""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import Table, func, inspect, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checksum_sync import db
from checksum_sync.models import (
    FingerprintRecord,
    create_metadata,
    fingerprint_table,
    path_key,
)
from checksum_sync.services.exceptions import StoreUnavailable


class FingerprintRepository:
    """
    Durable mapping of relative file path to last synced fingerprint.

    Records are scoped per table; every sync task owns exactly one table.
    Reads may run concurrently. Writes go through a lock because SQLite allows
    a single writer at a time. Every database failure is raised as
    StoreUnavailable.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self.metadata = create_metadata()
        self._write_lock = asyncio.Lock()

    def table(self, name: str) -> Table:
        """Get the table definition for `name`."""
        return fingerprint_table(name, self.metadata)

    async def ensure_table(self, name: str) -> None:
        """Create the fingerprint table for `name` if it does not exist."""
        table = self.table(name)
        try:
            async with self._write_lock:
                async with db.scoped_session(self.session_maker) as session:
                    conn = await session.connection()
                    await conn.run_sync(lambda sync_conn: table.create(sync_conn, checkfirst=True))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot create table {name}: {e}") from e
        logger.debug(f"Fingerprint table ready: {name}")

    async def get(self, table_name: str, relative_path: str) -> Optional[str]:
        """
        Get the stored fingerprint of a file.

        Returns:
            The digest, or None if the file has never been synced
        """
        table = self.table(table_name)
        key = path_key(relative_path)
        query = select(table.c.digest).where(table.c.file_path == key)
        try:
            async with self.session_maker() as session:
                result = await session.execute(query)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot read {key} from {table_name}: {e}") from e

    async def put(
        self,
        table_name: str,
        relative_path: str,
        fingerprint: str,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """
        Insert or update the fingerprint of a file.

        The upsert is a single INSERT ... ON CONFLICT DO UPDATE statement in
        one transaction, so readers see either the old or the new record.
        """
        table = self.table(table_name)
        key = path_key(relative_path)
        timestamp = timestamp or datetime.now(timezone.utc)
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)

        stmt = insert(table).values(file_path=key, digest=fingerprint, last_synced=timestamp)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.file_path],
            set_={"digest": stmt.excluded.digest, "last_synced": stmt.excluded.last_synced},
        )
        try:
            async with self._write_lock:
                async with db.scoped_session(self.session_maker) as session:
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot write {key} to {table_name}: {e}") from e

    async def find_by_path(self, table_name: str, relative_path: str) -> Optional[FingerprintRecord]:
        """Get the full record of a file."""
        table = self.table(table_name)
        key = path_key(relative_path)
        query = select(table).where(table.c.file_path == key)
        try:
            async with self.session_maker() as session:
                row = (await session.execute(query)).one_or_none()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot read {key} from {table_name}: {e}") from e
        return FingerprintRecord.from_row(row) if row else None

    async def find_all(self, table_name: str) -> List[FingerprintRecord]:
        """All records of a table, ordered by path."""
        table = self.table(table_name)
        query = select(table).order_by(table.c.file_path)
        try:
            async with self.session_maker() as session:
                rows = (await session.execute(query)).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot read {table_name}: {e}") from e
        return [FingerprintRecord.from_row(row) for row in rows]

    async def count(self, table_name: str) -> int:
        """Number of records in a table."""
        table = self.table(table_name)
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(func.count()).select_from(table))
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot count {table_name}: {e}") from e

    async def last_synced(self, table_name: str) -> Optional[datetime]:
        """Most recent sync time recorded in a table."""
        table = self.table(table_name)
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(func.max(table.c.last_synced)))
                value = result.scalar()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot read {table_name}: {e}") from e
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    async def list_tables(self) -> List[str]:
        """Names of all tables in the store."""
        try:
            async with self.session_maker() as session:
                conn = await session.connection()
                return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Cannot list tables: {e}") from e
