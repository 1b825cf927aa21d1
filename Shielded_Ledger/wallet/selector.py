"""
Input-note selection for a transfer.

Strategy:
    1. total < amount                → InsufficientBalanceError
    2. some note covers the amount   → the smallest such note (first in
                                       input order among equals)
    3. otherwise                     → largest-first greedy prefix

A multi-note selection is executed as a chain of single-input transfers;
``step_amounts`` gives how much each step sends to the recipient.
"""

from typing import Sequence

from Shielded_Ledger.ledger_shared.errors import InsufficientBalanceError, InvalidAmountError
from Shielded_Ledger.ledger_shared.types import Note


def total_amount(notes: Sequence[Note]) -> int:
    return sum(n.amount for n in notes)


def select_notes(notes: Sequence[Note], amount: int) -> list[Note]:
    if amount <= 0:
        raise InvalidAmountError(amount, "transfer amount must be positive")

    available = total_amount(notes)
    if available < amount:
        raise InsufficientBalanceError(available, amount)

    covering = [n for n in notes if n.amount >= amount]
    if covering:
        return [min(covering, key=lambda n: n.amount)]

    # sorted() is stable, equal amounts keep their input order
    chosen = []
    running = 0
    for note in sorted(notes, key=lambda n: n.amount, reverse=True):
        chosen.append(note)
        running += note.amount
        if running >= amount:
            return chosen

    # unreachable after the feasibility check
    raise InsufficientBalanceError(available, amount)


def step_amounts(selected: Sequence[Note], amount: int) -> list[int]:
    """Amount requested from each selected note, in order.

    Every step asks for ``min(still_owed, note.amount)`` and the owed counter
    is decremented by that request.
    """
    owed = amount
    out = []
    for note in selected:
        if owed <= 0:
            break
        step = min(owed, note.amount)
        out.append(step)
        owed -= step
    return out
