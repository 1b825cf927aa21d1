"""
Bridge between the remote relay and the local ledger view.

Data flow:
    Sync:    relay (encrypted messages for our owner key)
             → LedgerReconciler.decrypt_messages (local secret key)
             → OverviewService (nullifiers + spent flags)
             → AccountOverview

    Publish: settlement receipt (fresh output notes)
             → EncryptedEnvelope for each owner
             → relay.post_message (awaited, retried)
"""

from typing import Union

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.types import AccountOverview, MessageFilter, SettlementReceipt
from Shielded_Ledger.wallet.publisher import NotePublisher, recipient_key_hex
from Shielded_Ledger.wallet.reconciler import LedgerReconciler
from Shielded_Ledger.wallet.relay import RelayClient


async def fetch_and_reconcile(
    relay: RelayClient,
    reconciler: LedgerReconciler,
    owner_key: int,
    check_on_chain: bool = False,
    limit: int = config.DEFAULT_FETCH_LIMIT,
) -> AccountOverview:
    """Pull every message addressed to ``owner_key`` and rebuild the overview.

    Relay errors propagate; message-level failures are skipped inside the
    reconciler.
    """
    messages = await relay.fetch_all_messages(
        MessageFilter(recipient_key=recipient_key_hex(owner_key), limit=limit)
    )
    return await reconciler.reconcile(messages, check_on_chain)


async def publish_receipt(
    publisher: NotePublisher,
    receipt: SettlementReceipt,
    enc_public_key: Union[bytes, str],
    kind: str = config.KIND_DEPOSIT,
) -> int:
    """Publish every note of ``receipt`` to a single owner. Returns count published."""
    for note in receipt.output_notes:
        await publisher.publish(note, enc_public_key, kind)
    return len(receipt.output_notes)
