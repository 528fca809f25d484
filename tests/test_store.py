import asyncio
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.errors import StoreError
from db.store import Store


def with_store(tmp_path, body):
    async def go():
        store = Store(tmp_path / "watcher.db")
        await store.connect()
        try:
            return await body(store)
        finally:
            await store.close()

    return asyncio.run(go())


class TestSnapshots:
    def test_missing_snapshot_is_empty(self, tmp_path):
        async def body(store):
            return await store.get_snapshot("chat1/phone")

        assert with_store(tmp_path, body) == {}

    def test_put_get_delete(self, tmp_path):
        async def body(store):
            await store.put_snapshot("chat1/phone", {"a": Decimal("100"), "b": Decimal("9.99")})
            await store.put_snapshot("chat1/phone", {"a": Decimal("80"), "b": Decimal("9.99")})
            stored = await store.get_snapshot("chat1/phone")
            deleted = await store.delete_snapshot("chat1/phone")
            return stored, deleted, await store.get_snapshot("chat1/phone")

        stored, deleted, after = with_store(tmp_path, body)
        assert stored == {"a": Decimal("80"), "b": Decimal("9.99")}
        assert deleted is True
        assert after == {}

    def test_persists_across_connections(self, tmp_path):
        async def write(store):
            await store.put_snapshot("chat1/phone", {"a": Decimal("100")})

        async def read(store):
            return await store.get_snapshot("chat1/phone")

        with_store(tmp_path, write)
        assert with_store(tmp_path, read) == {"a": Decimal("100")}

    @pytest.mark.parametrize("items", ["not json", '{"x": null}', '{"x": "cheap"}', "[1, 2]"])
    def test_corrupt_snapshot_raises_store_error(self, tmp_path, items):
        async def body(store):
            await store.conn.execute(
                "INSERT INTO snapshots (job_id, items, updated_at) VALUES (?, ?, ?)",
                ("chat1/phone", items, "2026-01-01T00:00:00"),
            )
            await store.conn.commit()
            await store.get_snapshot("chat1/phone")

        with pytest.raises(StoreError):
            with_store(tmp_path, body)


class TestJobs:
    def test_list_jobs_sorted_and_idempotent(self, tmp_path):
        async def body(store):
            await store.add_job("chat1/zebra")
            await store.add_job("chat1/apple")
            await store.add_job("chat1/apple")
            return await store.list_jobs()

        assert [r.job_id for r in with_store(tmp_path, body)] == ["chat1/apple", "chat1/zebra"]

    def test_delete_job(self, tmp_path):
        async def body(store):
            await store.add_job("chat1/apple")
            first = await store.delete_job("chat1/apple")
            second = await store.delete_job("chat1/apple")
            return first, second, await store.list_jobs()

        assert with_store(tmp_path, body) == (True, False, [])


class TestChatConfig:
    def test_set_and_get_chat(self, tmp_path):
        async def body(store):
            missing = await store.get_chat("42")
            await store.set_chat("42", "@deals")
            await store.set_chat("42", "@bargains")
            return missing, await store.get_chat("42")

        assert with_store(tmp_path, body) == (None, "@bargains")

    def test_closed_store(self):
        with pytest.raises(RuntimeError):
            Store(":memory:").conn
