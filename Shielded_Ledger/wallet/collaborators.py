"""
External collaborators the wallet talks to.

The proving/settlement system, the messaging relay and the overview service
are black boxes; these protocols are the only surface the core depends on.
"""

from typing import Protocol, Sequence

from Shielded_Ledger.ledger_shared.types import (
    MessageFilter,
    MessagePage,
    Note,
    NoteStatus,
    OutputNote,
    SettlementReceipt,
)


class MessagingRelay(Protocol):
    async def fetch_messages(self, message_filter: MessageFilter) -> MessagePage: ...

    async def post_message(self, recipient_key: str, ciphertext_b64: str, kind: str) -> dict: ...


class OverviewService(Protocol):
    async def compute_overview(self, notes: Sequence[Note], check_on_chain: bool) -> list[NoteStatus]: ...


class SettlementSystem(Protocol):
    async def submit_transfer(
        self,
        input_note: Note,
        out1: OutputNote,
        out2: OutputNote,
    ) -> SettlementReceipt:
        """Prove and submit one single-input, two-output transfer.

        The receipt lists the created output notes in (out1, out2) order.
        """
        ...

    async def submit_deposit(self, amount: int, token_id: int, owner_key: int) -> SettlementReceipt: ...
