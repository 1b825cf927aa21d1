import asyncpg
import pytest
import pytest_asyncio

from Shielded_Ledger.ledger_server import config
from Shielded_Ledger.ledger_server.db import SCHEMA_SQL
from Shielded_Ledger.ledger_server.message_store import MessageStore

TEST_DSN = config.PG_TEST_DSN


@pytest_asyncio.fixture
async def pool():
    """Per-test pool against the test database; skips when Postgres is down."""
    try:
        p = await asyncpg.create_pool(TEST_DSN, min_size=1, max_size=5)
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"Postgres unavailable at {TEST_DSN}: {e}")

    async with p.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
        await conn.execute("TRUNCATE messages RESTART IDENTITY")
    yield p
    await p.close()


@pytest.fixture
def store(pool) -> MessageStore:
    return MessageStore(pool)
