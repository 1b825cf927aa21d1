import hashlib
import itertools
import random

import pytest

from Shielded_Ledger.ledger_shared.errors import UpstreamUnavailableError
from Shielded_Ledger.ledger_shared.types import (
    EncryptedMessage,
    MessageFilter,
    MessagePage,
    Note,
    NoteStatus,
    Randomness,
    SettlementReceipt,
)

_counter = itertools.count(1)


def make_note(amount: int, owner_key: int = 0xA11CE, token_id: int = 0) -> Note:
    return Note(amount=amount, token_id=token_id, owner_key=owner_key, randomness=Randomness(r=next(_counter)))


def nullifier_of(note: Note) -> str:
    digest = hashlib.sha256(repr((note.owner_key, note.randomness.r, note.amount)).encode()).hexdigest()
    return "0x" + digest


class FakeRelay:
    """In-memory MessagingRelay."""

    def __init__(self):
        self.messages: list[EncryptedMessage] = []
        self.fail_next_posts = 0
        self.post_calls = 0

    async def fetch_messages(self, message_filter: MessageFilter = MessageFilter()) -> MessagePage:
        matching = [
            m for m in self.messages
            if message_filter.recipient_key in (None, m.recipient_key)
        ]
        page = matching[message_filter.offset:message_filter.offset + message_filter.limit]
        return MessagePage(messages=page, total=len(matching))

    async def fetch_all_messages(self, message_filter: MessageFilter = MessageFilter()) -> list[EncryptedMessage]:
        page = await self.fetch_messages(MessageFilter(recipient_key=message_filter.recipient_key, limit=10_000))
        return page.messages

    async def post_message(self, recipient_key: str, ciphertext_b64: str, kind: str) -> dict:
        self.post_calls += 1
        if self.fail_next_posts > 0:
            self.fail_next_posts -= 1
            raise UpstreamUnavailableError("post_message", "relay down", 503)
        msg = EncryptedMessage(
            id=str(len(self.messages) + 1),
            recipient_key=recipient_key,
            ciphertext=ciphertext_b64,
            kind=kind,
            created_at="2026-01-01T00:00:00+00:00",
        )
        self.messages.append(msg)
        return {"success": True, "id": msg.id}


class FakeOverview:
    """OverviewService that marks notes in ``spent`` as spent."""

    def __init__(self):
        self.spent: set[str] = set()
        self.calls = 0

    async def compute_overview(self, notes, check_on_chain=False) -> list[NoteStatus]:
        self.calls += 1
        return [
            NoteStatus(note=n, nullifier_hex=nullifier_of(n), is_spent=nullifier_of(n) in self.spent, amount=n.amount)
            for n in notes
        ]


class FakeSettlement:
    """SettlementSystem that creates output notes and spends the input on the overview."""

    def __init__(self, overview: FakeOverview):
        self.overview = overview
        self.transfers = []
        self.deposits = []
        self.fail_next = 0

    def _materialize(self, out) -> Note:
        return Note(amount=out.amount, token_id=out.token_id, owner_key=out.owner_key,
                    randomness=Randomness(r=next(_counter), s=next(_counter)))

    async def submit_transfer(self, input_note, out1, out2) -> SettlementReceipt:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise UpstreamUnavailableError("submit_transfer", "prover offline")
        self.transfers.append((input_note, out1, out2))
        self.overview.spent.add(nullifier_of(input_note))
        return SettlementReceipt(
            tx_id=f"tx{len(self.transfers)}",
            output_notes=[self._materialize(out1), self._materialize(out2)],
        )

    async def submit_deposit(self, amount, token_id, owner_key) -> SettlementReceipt:
        self.deposits.append((amount, token_id, owner_key))
        note = Note(amount=amount, token_id=token_id, owner_key=owner_key, randomness=Randomness(r=next(_counter)))
        return SettlementReceipt(tx_id=f"dep{len(self.deposits)}", output_notes=[note])


@pytest.fixture
def note_factory():
    return make_note


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def overview():
    return FakeOverview()


@pytest.fixture
def settlement(overview):
    return FakeSettlement(overview)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def nullifier():
    return nullifier_of
