"""
Publishing freshly created notes to their owners.

A note nobody can decrypt is lost to its owner, so publication is awaited
and retried with exponential backoff (base, 2x base, 4x base, …).  When all
attempts fail the last UpstreamUnavailableError is raised to the caller.
"""

import asyncio
from typing import Union

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import UpstreamUnavailableError
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.note_codec import encrypt_note_payload
from Shielded_Ledger.ledger_shared.types import Note
from Shielded_Ledger.wallet.collaborators import MessagingRelay

logger = get_logger(__name__)


def recipient_key_hex(owner_key: int) -> str:
    return "0x" + format(owner_key, "x").rjust(64, "0")


class NotePublisher:
    def __init__(
        self,
        relay: MessagingRelay,
        max_retries: int = config.PUBLISH_RETRY_ATTEMPTS,
        base_delay: float = config.PUBLISH_RETRY_BASE_DELAY,
    ):
        self.relay = relay
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay

    async def publish(
        self,
        note: Note,
        enc_public_key: Union[bytes, str],
        kind: str = config.KIND_TRANSFER,
    ) -> dict:
        """Encrypt ``note`` for ``enc_public_key`` and post it to the relay."""
        ciphertext_b64 = encrypt_note_payload(enc_public_key, note)
        recipient_key = recipient_key_hex(note.owner_key)

        last_error = None
        for attempt in range(self.max_retries):
            try:
                ack = await self.relay.post_message(recipient_key, ciphertext_b64, kind)
                logger.info("Published %s note for %s… (attempt %d)", kind, recipient_key[:12], attempt + 1)
                return ack
            except UpstreamUnavailableError as e:
                last_error = e
                logger.warning(
                    "Publishing note failed (attempt %d/%d): %s",
                    attempt + 1, self.max_retries, e,
                )
                if attempt + 1 < self.max_retries:
                    await asyncio.sleep(self.base_delay * (2 ** attempt))

        raise last_error
