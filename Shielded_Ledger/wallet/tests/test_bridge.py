import pytest

from Shielded_Ledger.bridge import fetch_and_reconcile, publish_receipt
from Shielded_Ledger.ledger_shared.key_derivation import derive_keypair
from Shielded_Ledger.ledger_shared.types import SettlementReceipt
from Shielded_Ledger.wallet.publisher import NotePublisher, recipient_key_hex
from Shielded_Ledger.wallet.reconciler import LedgerReconciler

pytestmark = pytest.mark.asyncio

OWNER = 0xA11CE
KEYPAIR = derive_keypair(0xABCDEF)


async def test_publish_receipt_then_reconcile(relay, overview, note_factory):
    notes = [note_factory(1_200, owner_key=OWNER), note_factory(3_400, owner_key=OWNER)]
    receipt = SettlementReceipt(tx_id="tx1", output_notes=notes)

    published = await publish_receipt(NotePublisher(relay), receipt, KEYPAIR.public_key)
    assert published == 2
    assert all(m.kind == "deposit" for m in relay.messages)
    assert all(m.recipient_key == recipient_key_hex(OWNER) for m in relay.messages)

    ov = await fetch_and_reconcile(relay, LedgerReconciler(KEYPAIR, overview), OWNER)
    assert ov.balance == 4_600
    assert ov.spendable_notes == notes


async def test_reconcile_only_sees_own_recipient_key(relay, overview, note_factory):
    mine = note_factory(500, owner_key=OWNER)
    theirs = note_factory(900, owner_key=0xB0B)
    publisher = NotePublisher(relay)
    await publisher.publish(mine, KEYPAIR.public_key)
    await publisher.publish(theirs, KEYPAIR.public_key)

    ov = await fetch_and_reconcile(relay, LedgerReconciler(KEYPAIR, overview), OWNER)
    assert ov.spendable_notes == [mine]


async def test_empty_receipt_publishes_nothing(relay):
    assert await publish_receipt(NotePublisher(relay), SettlementReceipt(tx_id="tx0"), KEYPAIR.public_key) == 0
    assert relay.messages == []
