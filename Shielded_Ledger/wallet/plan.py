"""
Transfer plan: an explicit state machine over a chain of single-note steps.

    PENDING → STEP_IN_FLIGHT(i) → STEP_COMPLETED(i) → … → COMPLETED
                      ↓
                   FAILED  ── resume() ──→ PENDING

Each step spends exactly one input note.  A step that reached settlement
keeps its receipt, so resuming after a failure only retries what is left
(publishing its outputs) and never submits the same note twice.
"""

import enum
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import PlanStateError
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.types import Note, SettlementReceipt, SplitResult
from Shielded_Ledger.wallet.selector import select_notes, step_amounts
from Shielded_Ledger.wallet.splitter import split_output

logger = get_logger(__name__)


class PlanState(str, enum.Enum):
    PENDING = "PENDING"
    STEP_IN_FLIGHT = "STEP_IN_FLIGHT"
    STEP_COMPLETED = "STEP_COMPLETED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StepStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    SETTLED = "SETTLED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class TransferStep:
    index:            int
    input_note:       Note
    requested_amount: int
    split:            SplitResult
    status:           StepStatus = StepStatus.PENDING
    receipt:          Optional[SettlementReceipt] = None
    published:        list[bool] = field(default_factory=list)
    error:            Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.receipt is not None

    def unpublished_outputs(self) -> list[int]:
        return [i for i, done in enumerate(self.published) if not done]


@dataclass
class TransferPlan:
    amount:        int
    recipient_key: int
    steps:         list[TransferStep]
    state:         PlanState = PlanState.PENDING
    current:       Optional[int] = None

    @property
    def selected_notes(self) -> list[Note]:
        return [s.input_note for s in self.steps]

    @property
    def is_finished(self) -> bool:
        return self.state == PlanState.COMPLETED

    @property
    def delivered_amount(self) -> int:
        return sum(s.split.recipient_amount for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def change_amount(self) -> int:
        return sum(s.split.change_amount for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def remaining_owed(self) -> int:
        done = sum(s.requested_amount for s in self.steps if s.status == StepStatus.COMPLETED)
        return self.amount - done

    def next_step(self) -> Optional[TransferStep]:
        for step in self.steps:
            if step.status != StepStatus.COMPLETED:
                return step
        return None

    def _step(self, index: int) -> TransferStep:
        if not 0 <= index < len(self.steps):
            raise PlanStateError(self.state, f"address step {index}")
        return self.steps[index]

    def _require_in_flight(self, index: int, action: str) -> TransferStep:
        if self.state != PlanState.STEP_IN_FLIGHT or self.current != index:
            raise PlanStateError(self.state, f"{action} step {index}")
        return self._step(index)

    def begin_step(self, index: int) -> TransferStep:
        if self.state not in (PlanState.PENDING, PlanState.STEP_COMPLETED):
            raise PlanStateError(self.state, f"begin step {index}")
        nxt = self.next_step()
        if nxt is None or nxt.index != index:
            raise PlanStateError(self.state, f"begin out-of-order step {index}")

        self.state = PlanState.STEP_IN_FLIGHT
        self.current = index
        nxt.error = None
        if nxt.status != StepStatus.SETTLED:
            nxt.status = StepStatus.IN_FLIGHT
        logger.info("Plan step %d/%d in flight", index + 1, len(self.steps))
        return nxt

    def record_settlement(self, index: int, receipt: SettlementReceipt) -> None:
        step = self._require_in_flight(index, "settle")
        if step.settled:
            raise PlanStateError(self.state, f"settle already settled step {index}")
        step.receipt = receipt
        step.published = [False] * len(receipt.output_notes)
        step.status = StepStatus.SETTLED
        logger.info("Plan step %d settled in tx %s", index + 1, receipt.tx_id)

    def mark_published(self, index: int, output_index: int) -> None:
        step = self._require_in_flight(index, "publish output of")
        if not step.settled:
            raise PlanStateError(self.state, f"publish output of unsettled step {index}")
        step.published[output_index] = True

    def complete_step(self, index: int) -> None:
        step = self._require_in_flight(index, "complete")
        if not step.settled or step.unpublished_outputs():
            raise PlanStateError(self.state, f"complete unfinished step {index}")

        step.status = StepStatus.COMPLETED
        self.current = None
        if self.next_step() is None:
            self.state = PlanState.COMPLETED
            logger.info("Plan completed: delivered=%d change=%d", self.delivered_amount, self.change_amount)
        else:
            self.state = PlanState.STEP_COMPLETED

    def fail_step(self, index: int, error: BaseException) -> None:
        step = self._require_in_flight(index, "fail")
        step.status = StepStatus.FAILED
        step.error = f"{type(error).__name__}: {error}"
        self.state = PlanState.FAILED
        logger.warning("Plan step %d failed: %s", index + 1, step.error)

    def resume(self) -> None:
        if self.state != PlanState.FAILED:
            raise PlanStateError(self.state, "resume")
        step = self._step(self.current)
        step.status = StepStatus.SETTLED if step.settled else StepStatus.PENDING
        self.current = None
        self.state = PlanState.PENDING if not any(
            s.status == StepStatus.COMPLETED for s in self.steps
        ) else PlanState.STEP_COMPLETED
        logger.info("Plan resumed at step %d", step.index + 1)


def select_and_split(
    spendable: Sequence[Note],
    amount: int,
    recipient_key: int,
    *,
    min_dust: int = config.MIN_DUST_ATOMS,
    rng: Optional[random.Random] = None,
) -> TransferPlan:
    """Select input notes for ``amount`` and pre-compute every step's split.

    Raises InsufficientBalanceError when the spendable total is too small.
    """
    selected = select_notes(spendable, amount)
    steps = [
        TransferStep(
            index=i,
            input_note=note,
            requested_amount=step_amount,
            split=split_output(note, step_amount, recipient_key, min_dust=min_dust, rng=rng),
        )
        for i, (note, step_amount) in enumerate(zip(selected, step_amounts(selected, amount)))
    ]
    return TransferPlan(amount=amount, recipient_key=recipient_key, steps=steps)
