"""
LedgerReconciler rebuilds the account view from encrypted messages.

decrypt  → every message is opened independently (thread pool, input order
           kept); anything that fails to open or parse is logged and skipped
overview → nullifiers and spent status come from the OverviewService, the
           balance is summed here over unspent notes

No state survives between calls, so reconciling the same messages twice
gives an identical AccountOverview.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import MalformedNoteError
from Shielded_Ledger.ledger_shared.envelope import EnvelopeCodec
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.note_codec import decode_payload
from Shielded_Ledger.ledger_shared.types import (
    AccountOverview,
    EncryptedMessage,
    EncryptionKeypair,
    Note,
)
from Shielded_Ledger.wallet.collaborators import OverviewService

logger = get_logger(__name__)

EMPTY_OVERVIEW = AccountOverview(balance=0, notes=(), spendable_count=0, total_notes=0)


class LedgerReconciler:
    def __init__(
        self,
        keypair: EncryptionKeypair,
        overview_service: OverviewService,
        max_workers: int = config.DECRYPT_MAX_WORKERS,
    ):
        self._codec = EnvelopeCodec(keypair)
        self.overview_service = overview_service
        self.max_workers = max_workers

    def decrypt_message(self, msg: EncryptedMessage) -> Optional[Note]:
        payload = self._codec.decrypt(msg.ciphertext)
        if payload is None:
            logger.debug("Message %s (%s) did not open with the local key", msg.id, msg.kind)
            return None
        try:
            return decode_payload(payload)
        except MalformedNoteError as e:
            logger.warning("Message %s decrypted but is not a note: %s", msg.id, e.reason)
            return None

    def decrypt_messages(self, messages: Sequence[EncryptedMessage]) -> list[Note]:
        if not messages:
            return []
        workers = max(1, min(self.max_workers, len(messages)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.decrypt_message, messages))

        notes = [n for n in results if n is not None]
        skipped = len(messages) - len(notes)
        if skipped:
            logger.info("Decrypted %d of %d messages (%d skipped)", len(notes), len(messages), skipped)
        return notes

    async def compute_overview(self, notes: Sequence[Note], check_on_chain: bool = False) -> AccountOverview:
        if not notes:
            return EMPTY_OVERVIEW

        statuses = await self.overview_service.compute_overview(list(notes), check_on_chain)
        balance = sum(s.amount for s in statuses if not s.is_spent)
        spendable = sum(1 for s in statuses if not s.is_spent)
        return AccountOverview(
            balance=balance,
            notes=tuple(statuses),
            spendable_count=spendable,
            total_notes=len(statuses),
        )

    async def reconcile(
        self,
        messages: Sequence[EncryptedMessage],
        check_on_chain: bool = False,
    ) -> AccountOverview:
        notes = self.decrypt_messages(messages)
        overview = await self.compute_overview(notes, check_on_chain)
        logger.info(
            "Reconciled %d messages: balance=%d spendable=%d total=%d",
            len(messages), overview.balance, overview.spendable_count, overview.total_notes,
        )
        return overview
