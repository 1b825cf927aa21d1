import asyncpg
import asyncio

from Shielded_Ledger.ledger_shared.errors import ConnectionPoolError

pool: asyncpg.Pool = None

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS messages(
    id BIGSERIAL PRIMARY KEY,
    recipient_key VARCHAR(66) NOT NULL,
    sender_key VARCHAR(66) DEFAULT NULL,
    ciphertext TEXT NOT NULL,
    kind VARCHAR(16) NOT NULL CHECK ( kind IN ('deposit' , 'transfer') ),

    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    read_at TIMESTAMPTZ DEFAULT NULL
);

CREATE INDEX IF NOT EXISTS idx_msg_recipient
    ON messages (recipient_key , created_at ASC);
CREATE INDEX IF NOT EXISTS idx_msg_unread
    ON messages (recipient_key , created_at ASC)
    WHERE read_at IS NULL;
CREATE INDEX IF NOT EXISTS idx_msg_sender
    ON messages (sender_key , created_at ASC);
"""

async def create_pool(dsn: str, min_size: int = 5, max_size: int = 20) -> asyncpg.Pool:
    global pool
    if pool is not None:
        return pool

    try:
        pool = await asyncpg.create_pool(
            dsn=dsn,
            max_size=max_size,
            min_size=min_size,
        )
        async with pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
    except (asyncpg.PostgresError, OSError) as e:
        raise ConnectionPoolError(f"Failed to create pool: {e}")

    return pool

async def close_pool() -> None:
    global pool
    if pool is None:
        return
    try:
        await asyncio.wait_for(pool.close(), timeout=5.0)
    except asyncio.TimeoutError:
        pool.terminate()
    finally:
        pool = None

async def health_check() -> bool:
    if pool is None:
        return False
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            return result == 1
    except (asyncpg.PostgresError, OSError):
        return False
