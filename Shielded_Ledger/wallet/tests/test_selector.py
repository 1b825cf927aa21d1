import pytest

from Shielded_Ledger.ledger_shared.errors import InsufficientBalanceError, InvalidAmountError
from Shielded_Ledger.wallet.selector import select_notes, step_amounts, total_amount


def _amounts(notes):
    return [n.amount for n in notes]


# ─── Single note ───

def test_prefers_single_covering_note(note_factory):
    notes = [note_factory(a) for a in (30, 80, 50)]
    assert _amounts(select_notes(notes, 50)) == [50]


def test_smallest_covering_note_wins(note_factory):
    notes = [note_factory(a) for a in (90, 30, 60, 70)]
    assert _amounts(select_notes(notes, 55)) == [60]


def test_covering_tie_keeps_input_order(note_factory):
    notes = [note_factory(a) for a in (80, 60, 60)]
    assert select_notes(notes, 50) == [notes[1]]


def test_exact_total_single_note(note_factory):
    notes = [note_factory(100)]
    assert _amounts(select_notes(notes, 100)) == [100]


# ─── Multiple notes ───

def test_greedy_largest_first(note_factory):
    notes = [note_factory(a) for a in (10, 20, 25)]
    assert _amounts(select_notes(notes, 40)) == [25, 20]


def test_greedy_takes_all_when_needed(note_factory):
    notes = [note_factory(a) for a in (10, 20, 25)]
    assert _amounts(select_notes(notes, 55)) == [25, 20, 10]


def test_equal_amounts_keep_input_order(note_factory):
    notes = [note_factory(a) for a in (20, 20, 20)]
    assert select_notes(notes, 40) == notes[:2]


def test_selection_covers_amount(note_factory):
    notes = [note_factory(a) for a in (7, 3, 11, 5, 2)]
    for amount in range(1, total_amount(notes) + 1):
        assert total_amount(select_notes(notes, amount)) >= amount


# ─── Errors ───

def test_insufficient_balance(note_factory):
    notes = [note_factory(a) for a in (10, 20)]
    with pytest.raises(InsufficientBalanceError) as exc:
        select_notes(notes, 31)
    assert exc.value.available == 30
    assert exc.value.requested == 31


def test_empty_notes_insufficient():
    with pytest.raises(InsufficientBalanceError):
        select_notes([], 1)


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amount(note_factory, amount):
    with pytest.raises(InvalidAmountError):
        select_notes([note_factory(10)], amount)


# ─── Step amounts ───

def test_step_amounts_multi(note_factory):
    selected = [note_factory(25), note_factory(20)]
    assert step_amounts(selected, 40) == [25, 15]


def test_step_amounts_single(note_factory):
    assert step_amounts([note_factory(80)], 50) == [50]
