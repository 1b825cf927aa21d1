"""
Two-output split of a single input note.

Partial transfer (T < N): recipient gets exactly T, sender gets N - T back.

Exact match (T == N): sending the whole note would show that a full note was
consumed, so the note is cut at a uniform random point in
[min_dust, N - min_dust] (halved when N < 2 * min_dust) and a fair coin
decides which piece goes to the recipient.  The recipient therefore does not
necessarily receive T in this case; the sender keeps the other piece as a
fresh note.
"""

import random
import secrets
from typing import Optional

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import InvalidAmountError
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.types import Note, OutputNote, SplitResult

logger = get_logger(__name__)

_system_random = secrets.SystemRandom()


def random_split_point(total: int, min_dust: int, rng: random.Random) -> int:
    max_split = total - min_dust
    if max_split < min_dust:
        return total // 2
    return rng.randint(min_dust, max_split)


def split_output(
    input_note: Note,
    transfer_amount: int,
    recipient_key: int,
    *,
    min_dust: int = config.MIN_DUST_ATOMS,
    rng: Optional[random.Random] = None,
) -> SplitResult:
    n = input_note.amount
    if transfer_amount <= 0:
        raise InvalidAmountError(transfer_amount, "transfer amount must be positive")
    if transfer_amount > n:
        raise InvalidAmountError(transfer_amount, f"exceeds input note amount {n}")
    if min_dust < 0:
        raise InvalidAmountError(min_dust, "min_dust must be non-negative")

    sender_key = input_note.owner_key
    token_id = input_note.token_id

    if transfer_amount < n:
        out1_amount = transfer_amount
        out2_amount = n - transfer_amount
        recipient_gets_out1 = True
        randomized = False
    else:
        rng = rng or _system_random
        out1_amount = random_split_point(n, min_dust, rng)
        out2_amount = n - out1_amount
        recipient_gets_out1 = rng.getrandbits(1) == 0
        randomized = True

    out1 = OutputNote(
        amount=out1_amount,
        owner_key=recipient_key if recipient_gets_out1 else sender_key,
        token_id=token_id,
    )
    out2 = OutputNote(
        amount=out2_amount,
        owner_key=sender_key if recipient_gets_out1 else recipient_key,
        token_id=token_id,
    )
    recipient_amount = out1_amount if recipient_gets_out1 else out2_amount

    logger.debug(
        "split input=%d transfer=%d out1=%d out2=%d recipient_gets_out1=%s randomized=%s",
        n, transfer_amount, out1_amount, out2_amount, recipient_gets_out1, randomized,
    )

    return SplitResult(
        out1=out1,
        out2=out2,
        recipient_amount=recipient_amount,
        change_amount=n - recipient_amount,
        recipient_gets_out1=recipient_gets_out1,
        randomized=randomized,
    )
