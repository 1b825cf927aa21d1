import base64
import logging

import pytest

from Shielded_Ledger.ledger_shared import envelope
from Shielded_Ledger.ledger_shared.key_derivation import derive_keypair
from Shielded_Ledger.ledger_shared.note_codec import encrypt_note_payload
from Shielded_Ledger.ledger_shared.types import EncryptedMessage
from Shielded_Ledger.wallet.reconciler import EMPTY_OVERVIEW, LedgerReconciler

pytestmark = pytest.mark.asyncio

KEYPAIR = derive_keypair(0xC0FFEE)


def _message(ciphertext: str, idx: int) -> EncryptedMessage:
    return EncryptedMessage(
        id=str(idx), recipient_key="0xabc", ciphertext=ciphertext,
        kind="transfer", created_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def reconciler(overview):
    return LedgerReconciler(KEYPAIR, overview, max_workers=4)


@pytest.fixture
def notes(note_factory):
    return [note_factory(a) for a in (1_000, 2_500, 4_000)]


@pytest.fixture
def mailbox(notes):
    """Three valid notes mixed with undecryptable and malformed messages."""
    envelopes = [encrypt_note_payload(KEYPAIR.public_key, n) for n in notes]
    envelopes.insert(1, "garbage")
    envelopes.insert(3, encrypt_note_payload(derive_keypair(1).public_key, notes[0]))
    envelopes.append(envelope.encrypt_json(KEYPAIR.public_key, {"note": {"amount": "0x1"}}))
    return [_message(e, i) for i, e in enumerate(envelopes)]


# ── Decrypt ──

async def test_decrypt_skips_bad_messages(reconciler, mailbox, notes):
    assert reconciler.decrypt_messages(mailbox) == notes


async def test_decrypt_keeps_input_order(reconciler, note_factory):
    many = [note_factory(1_000 + i) for i in range(40)]
    msgs = [_message(encrypt_note_payload(KEYPAIR.public_key, n), i) for i, n in enumerate(many)]
    assert reconciler.decrypt_messages(msgs) == many


async def test_malformed_note_is_logged(reconciler, mailbox, caplog):
    with caplog.at_level(logging.WARNING, logger="Shielded_Ledger"):
        reconciler.decrypt_messages(mailbox)
    assert any("is not a note" in r.getMessage() for r in caplog.records)


async def test_decrypt_empty(reconciler):
    assert reconciler.decrypt_messages([]) == []


async def test_deeply_nested_message_does_not_abort_reconcile(reconciler, mailbox, notes):
    nested = b"[" * 200_000 + b"]" * 200_000
    hostile = [
        _message(envelope.encrypt(KEYPAIR.public_key, nested), 90),
        _message(base64.b64encode(nested).decode(), 91),
    ]

    ov = await reconciler.reconcile(hostile + mailbox)
    assert ov.spendable_notes == notes


# ── Overview ──

async def test_reconcile_balance(reconciler, mailbox, notes):
    ov = await reconciler.reconcile(mailbox)
    assert ov.total_notes == 3
    assert ov.spendable_count == 3
    assert ov.balance == 7_500
    assert ov.spendable_notes == notes


async def test_spent_notes_excluded_from_balance(reconciler, mailbox, notes, overview, nullifier):
    overview.spent.add(nullifier(notes[1]))

    ov = await reconciler.reconcile(mailbox)
    assert ov.total_notes == 3
    assert ov.spendable_count == 2
    assert ov.balance == 5_000
    assert notes[1] not in ov.spendable_notes


async def test_reconcile_is_idempotent(reconciler, mailbox):
    assert await reconciler.reconcile(mailbox) == await reconciler.reconcile(mailbox)


async def test_no_notes_skips_service(reconciler, overview):
    ov = await reconciler.reconcile([_message("garbage", 0)])
    assert ov == EMPTY_OVERVIEW
    assert overview.calls == 0
