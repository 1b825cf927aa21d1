from typing import Optional

import asyncpg

from Shielded_Ledger.ledger_shared import config as shared_config
from Shielded_Ledger.ledger_shared.types import EncryptedMessage, MessageFilter, MessagePage
from Shielded_Ledger.ledger_shared import errors


def _row_to_message(row) -> EncryptedMessage:
    return EncryptedMessage(
        id=str(row["id"]),
        recipient_key=row["recipient_key"],
        ciphertext=row["ciphertext"],
        kind=row["kind"],
        created_at=row["created_at"].isoformat(),
        sender_key=row["sender_key"],
        read_at=row["read_at"].isoformat() if row["read_at"] else None,
    )


def _where_clause(message_filter: MessageFilter) -> tuple[str, list]:
    conditions = []
    args = []
    if message_filter.recipient_key:
        args.append(message_filter.recipient_key.lower())
        conditions.append(f"recipient_key = ${len(args)}")
    if message_filter.sender_key:
        args.append(message_filter.sender_key.lower())
        conditions.append(f"sender_key = ${len(args)}")
    if message_filter.unread_only:
        conditions.append("read_at IS NULL")

    where = " WHERE " + " AND ".join(conditions) if conditions else ""
    return where, args


class MessageStore:
    pool: asyncpg.Pool

    def __init__(self, p: asyncpg.Pool):
        self.pool = p

    async def post_message(
        self,
        recipient_key: str,
        ciphertext: str,
        kind: str,
        sender_key: Optional[str] = None,
    ) -> EncryptedMessage:
        if kind not in shared_config.VALID_MESSAGE_KINDS:
            raise errors.InvalidMessageKindError(kind)

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO messages (recipient_key, sender_key, ciphertext, kind)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id, recipient_key, sender_key, ciphertext, kind, created_at, read_at
                    """,
                    recipient_key.lower(),
                    sender_key.lower() if sender_key else None,
                    ciphertext,
                    kind,
                )
                return _row_to_message(row)
        except asyncpg.PostgresError as e:
            raise errors.MessageStoreError(f"post_message failed: {e}")

    async def fetch_messages(self, message_filter: MessageFilter) -> MessagePage:
        """Oldest first, paged by limit/offset; ``total`` counts every match."""
        where, args = _where_clause(message_filter)
        try:
            async with self.pool.acquire() as conn:
                total = await conn.fetchval(f"SELECT COUNT(*) FROM messages{where}", *args)
                page_args = args + [message_filter.limit, message_filter.offset]
                rows = await conn.fetch(
                    f"""
                    SELECT id, recipient_key, sender_key, ciphertext, kind, created_at, read_at
                    FROM messages{where}
                    ORDER BY created_at ASC, id ASC
                    LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
                    """,
                    *page_args,
                )
                return MessagePage(messages=[_row_to_message(r) for r in rows], total=total)
        except asyncpg.PostgresError as e:
            raise errors.MessageStoreError(f"fetch_messages failed: {e}")

    async def mark_read(self, message_id: int) -> bool:
        """Returns False when the message does not exist. Re-marking keeps the first read_at."""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    """
                    UPDATE messages
                    SET read_at = COALESCE(read_at, NOW())
                    WHERE id = $1
                    """,
                    message_id,
                )
                return int(result.split()[-1]) == 1
        except asyncpg.PostgresError as e:
            raise errors.MessageStoreError(f"mark_read failed: {e}")

    async def purge_read(self, max_age_days: int = 30) -> int:
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    """
                    DELETE FROM messages
                    WHERE read_at IS NOT NULL
                      AND read_at < NOW() - INTERVAL '1 day' * $1
                    """,
                    max_age_days,
                )
                # "DELETE N"
                return int(result.split()[-1])
        except asyncpg.PostgresError as e:
            raise errors.MessageStoreError(f"purge_read failed: {e}")
