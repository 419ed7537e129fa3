"""SQLite storage implementation."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import TranscriptMessage, UsageRecord


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class IStorage(Protocol):
    """Durable store for usage counters and backend transcripts (SQLite)."""

    async def init(self) -> None:
        """Open the database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Usage
    async def save_usage_record(self, record: UsageRecord) -> None:
        """Insert or replace the usage record of one identity."""
        ...

    async def get_usage_record(self, identity: str) -> UsageRecord | None:
        """Get the usage record of one identity."""
        ...

    async def get_usage_records(self) -> list[UsageRecord]:
        """Get every usage record."""
        ...

    # Transcripts
    async def save_message(self, message: TranscriptMessage) -> None:
        """Append a transcript message."""
        ...

    async def get_messages(self, conversation_id: str) -> list[TranscriptMessage]:
        """Get a conversation's transcript in chronological order."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def init(self) -> None:
        """Open the database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Usage
    async def save_usage_record(self, record: UsageRecord) -> None:
        """Insert or replace the usage record of one identity."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO usage_records
            (identity, updated, daily_tokens, monthly_tokens, total_tokens)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.identity,
                record.updated.isoformat(),
                record.daily_tokens,
                record.monthly_tokens,
                record.total_tokens,
            ),
        )
        await conn.commit()

    async def get_usage_record(self, identity: str) -> UsageRecord | None:
        """Get the usage record of one identity."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT identity, updated, daily_tokens, monthly_tokens, total_tokens
            FROM usage_records
            WHERE identity = ?
            """,
            (identity,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._usage_from_row(row)

    async def get_usage_records(self) -> list[UsageRecord]:
        """Get every usage record."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT identity, updated, daily_tokens, monthly_tokens, total_tokens
            FROM usage_records
            """
        )
        rows = await cursor.fetchall()
        return [self._usage_from_row(row) for row in rows]

    @staticmethod
    def _usage_from_row(row) -> UsageRecord:
        return UsageRecord(
            identity=row[0],
            updated=_parse_ts(row[1]),
            daily_tokens=row[2],
            monthly_tokens=row[3],
            total_tokens=row[4],
        )

    # Transcripts
    async def save_message(self, message: TranscriptMessage) -> None:
        """Append a transcript message."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO messages (id, conversation_id, parent_id, role, content, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.conversation_id,
                message.parent_id,
                message.role,
                message.content,
                message.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_messages(self, conversation_id: str) -> list[TranscriptMessage]:
        """Get a conversation's transcript in chronological order."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, conversation_id, role, content, timestamp, parent_id
            FROM messages
            WHERE conversation_id = ?
            ORDER BY timestamp ASC, rowid ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()

        return [
            TranscriptMessage(
                id=row[0],
                conversation_id=row[1],
                role=row[2],
                content=row[3],
                timestamp=_parse_ts(row[4]),
                parent_id=row[5],
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ("usage_records", "messages"):
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
