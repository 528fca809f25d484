import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import aiosqlite

from config import settings
from core.errors import StoreError
from core.models import Snapshot
from db.models import SCHEMA, JobRecord


@contextmanager
def _store_errors(action: str, key: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as e:
        raise StoreError(f"store: couldn't {action} {key}: {e}") from e


class Store:
    def __init__(self, db_path: Path | str | None = None):
        path = db_path or settings.database_path
        self.db_path = Path(path) if isinstance(path, str) else path
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    # === Jobs ===

    async def add_job(self, job_id: str) -> None:
        now = datetime.utcnow().isoformat()
        with _store_errors("add job", job_id):
            await self.conn.execute(
                "INSERT OR IGNORE INTO jobs (job_id, created_at) VALUES (?, ?)",
                (job_id, now),
            )
            await self.conn.commit()

    async def delete_job(self, job_id: str) -> bool:
        with _store_errors("delete job", job_id):
            cursor = await self.conn.execute("DELETE FROM jobs WHERE job_id = ?", (job_id,))
            await self.conn.commit()
        return cursor.rowcount > 0

    async def list_jobs(self) -> list[JobRecord]:
        with _store_errors("list", "jobs"):
            cursor = await self.conn.execute("SELECT * FROM jobs ORDER BY job_id")
            rows = await cursor.fetchall()
        return [
            JobRecord(job_id=row["job_id"], created_at=datetime.fromisoformat(row["created_at"]))
            for row in rows
        ]

    # === Snapshots ===

    async def get_snapshot(self, job_id: str) -> Snapshot:
        with _store_errors("get", job_id):
            cursor = await self.conn.execute(
                "SELECT items FROM snapshots WHERE job_id = ?", (job_id,)
            )
            row = await cursor.fetchone()
        if not row:
            return {}

        try:
            items = json.loads(row["items"])
            return {listing_id: Decimal(price) for listing_id, price in items.items()}
        except (ValueError, TypeError, AttributeError, InvalidOperation) as e:
            raise StoreError(f"store: couldn't decode snapshot {job_id}: {e}") from e

    async def put_snapshot(self, job_id: str, snapshot: Snapshot) -> None:
        now = datetime.utcnow().isoformat()
        items = json.dumps({listing_id: str(price) for listing_id, price in snapshot.items()})
        with _store_errors("put", job_id):
            await self.conn.execute(
                """
                INSERT INTO snapshots (job_id, items, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(job_id) DO UPDATE SET items = excluded.items,
                updated_at = excluded.updated_at
                """,
                (job_id, items, now),
            )
            await self.conn.commit()

    async def delete_snapshot(self, job_id: str) -> bool:
        with _store_errors("delete", job_id):
            cursor = await self.conn.execute("DELETE FROM snapshots WHERE job_id = ?", (job_id,))
            await self.conn.commit()
        return cursor.rowcount > 0

    # === Chat config ===

    async def get_chat(self, requester: str) -> str | None:
        with _store_errors("get chat for", requester):
            cursor = await self.conn.execute(
                "SELECT chat FROM chat_config WHERE requester = ?", (requester,)
            )
            row = await cursor.fetchone()
        return row["chat"] if row else None

    async def set_chat(self, requester: str, chat: str) -> None:
        now = datetime.utcnow().isoformat()
        with _store_errors("set chat for", requester):
            await self.conn.execute(
                """
                INSERT INTO chat_config (requester, chat, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(requester) DO UPDATE SET chat = excluded.chat,
                updated_at = excluded.updated_at
                """,
                (requester, chat, now),
            )
            await self.conn.commit()


store = Store()
