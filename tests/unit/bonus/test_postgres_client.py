"""
Unit tests for the asyncpg pool wrapper

asyncpg.create_pool is replaced, so no database is needed.
"""
import asyncio

import pytest

from core import postgres_client
from core.postgres_client import PostgresClient

pytestmark = [pytest.mark.unit, pytest.mark.asyncio]


class FakePool:

    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
def created_pools(monkeypatch):
    pools = []

    async def create_pool(**kwargs):
        # Suspend like a real connect so concurrent callers interleave
        await asyncio.sleep(0)
        pool = FakePool()
        pools.append(pool)
        return pool

    monkeypatch.setattr(postgres_client.asyncpg, "create_pool", create_pool)
    return pools


class TestPoolCreation:

    async def test_concurrent_first_use_creates_one_pool(self, created_pools):
        db = PostgresClient("bonus_service", dsn="postgresql://localhost/test")

        pools = await asyncio.gather(*(db.connect() for _ in range(5)))

        assert len(created_pools) == 1
        assert all(pool is created_pools[0] for pool in pools)

    async def test_close_allows_reconnect(self, created_pools):
        db = PostgresClient("bonus_service", dsn="postgresql://localhost/test")
        first = await db.connect()

        await db.close()
        second = await db.connect()

        assert first.closed is True
        assert second is not first
        assert len(created_pools) == 2
