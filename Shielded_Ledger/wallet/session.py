"""
WalletSession orchestrates the shielded-note lifecycle for one identity.

Setup     → key store: validate-or-regenerate the encryption keypair
Sync      → relay messages → decrypt → overview service → AccountOverview
Transfer  → select notes → split each step → settle → publish outputs
Deposit   → settle → publish the new note to ourselves
"""

import asyncio
import random
from typing import Optional

import redis

from Shielded_Ledger.bridge import fetch_and_reconcile, publish_receipt
from Shielded_Ledger.ledger_db import connection
from Shielded_Ledger.ledger_db.keystore import LocalKeyStore
from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.envelope import b64encode
from Shielded_Ledger.ledger_shared.errors import InvalidAmountError, UpstreamUnavailableError
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.types import (
    AccountOverview,
    DerivedKeypair,
    Note,
    Recipient,
)
from Shielded_Ledger.wallet.collaborators import OverviewService, SettlementSystem
from Shielded_Ledger.wallet.plan import PlanState, TransferPlan, select_and_split
from Shielded_Ledger.wallet.publisher import NotePublisher
from Shielded_Ledger.wallet.reconciler import LedgerReconciler
from Shielded_Ledger.wallet.relay import OverviewClient, RelayClient

logger = get_logger(__name__)


class WalletSession:
    """Shielded wallet for one identity."""

    def __init__(
        self,
        identity_id: str,
        owner_key: int,
        *,
        scalar: Optional[int] = None,
        keystore_client: Optional[redis.Redis] = None,
        relay: Optional[RelayClient] = None,
        overview_service: Optional[OverviewService] = None,
        settlement: Optional[SettlementSystem] = None,
        publisher: Optional[NotePublisher] = None,
        min_dust: int = config.MIN_DUST_ATOMS,
        rng: Optional[random.Random] = None,
    ):
        self.identity_id = identity_id
        self.owner_key = owner_key
        self._scalar = scalar
        self._keystore_client = keystore_client
        self._owns_keystore_client = keystore_client is None
        self._relay = relay
        self._overview_service = overview_service
        self._publisher = publisher
        self.settlement = settlement
        self.min_dust = min_dust
        self._rng = rng

        self.keystore: Optional[LocalKeyStore] = None
        self.keys: Optional[DerivedKeypair] = None
        self.reconciler: Optional[LedgerReconciler] = None
        self._transfer_lock = asyncio.Lock()

    def setup(self) -> DerivedKeypair:
        """Load (or derive) the encryption keypair and wire the collaborators."""
        if self._keystore_client is None:
            self._keystore_client = connection.create_keystore_client()
        if self._relay is None:
            self._relay = RelayClient()
        if self._overview_service is None:
            self._overview_service = OverviewClient()
        if self._publisher is None:
            self._publisher = NotePublisher(self._relay)

        self.keystore = LocalKeyStore(self._keystore_client, self.identity_id)
        self.keys = self.keystore.validate_or_regenerate(self._scalar)
        if not self.keys.deterministic:
            logger.warning("Session %s runs with a non-deterministic encryption key", self.identity_id)

        self.reconciler = LedgerReconciler(self.keys.keypair, self._overview_service)
        return self.keys

    @property
    def relay(self) -> Optional[RelayClient]:
        return self._relay

    @property
    def enc_public_key(self) -> bytes:
        return self.keys.keypair.public_key

    @property
    def enc_public_key_b64(self) -> str:
        return b64encode(self.enc_public_key)

    # ─── Sync ───

    async def refresh_overview(self, check_on_chain: bool = False) -> AccountOverview:
        return await fetch_and_reconcile(self._relay, self.reconciler, self.owner_key, check_on_chain)

    async def spendable_notes(self) -> list[Note]:
        overview = await self.refresh_overview(check_on_chain=False)
        return overview.spendable_notes

    # ─── Transfer ───

    async def plan_transfer(self, amount: int, recipient: Recipient) -> TransferPlan:
        spendable = await self.spendable_notes()
        return select_and_split(
            spendable, amount, recipient.owner_key,
            min_dust=self.min_dust, rng=self._rng,
        )

    def _enc_key_for(self, owner_key: int, recipient: Recipient) -> bytes:
        if owner_key == self.owner_key:
            return self.enc_public_key
        return recipient.enc_public_key

    async def _run_plan(self, plan: TransferPlan, recipient: Recipient) -> TransferPlan:
        if self.settlement is None:
            raise UpstreamUnavailableError("submit_transfer", "no settlement system configured")

        while True:
            step = plan.next_step()
            if step is None:
                return plan

            plan.begin_step(step.index)
            try:
                if not step.settled:
                    receipt = await self.settlement.submit_transfer(
                        step.input_note, step.split.out1, step.split.out2,
                    )
                    plan.record_settlement(step.index, receipt)

                for out_idx in step.unpublished_outputs():
                    note = step.receipt.output_notes[out_idx]
                    await self._publisher.publish(
                        note, self._enc_key_for(note.owner_key, recipient), config.KIND_TRANSFER,
                    )
                    plan.mark_published(step.index, out_idx)

                plan.complete_step(step.index)
            except Exception as e:
                plan.fail_step(step.index, e)
                raise

    async def execute_plan(self, plan: TransferPlan, recipient: Recipient) -> TransferPlan:
        """Run (or resume) ``plan`` step by step."""
        async with self._transfer_lock:
            if plan.state == PlanState.FAILED:
                plan.resume()
            return await self._run_plan(plan, recipient)

    async def transfer(self, amount: int, recipient: Recipient) -> TransferPlan:
        """Select, split, settle and publish a transfer of ``amount``.

        Serialized per session so two transfers never pick the same notes.
        """
        async with self._transfer_lock:
            plan = await self.plan_transfer(amount, recipient)
            logger.info(
                "Transfer of %d planned over %d step(s)", amount, len(plan.steps),
            )
            return await self._run_plan(plan, recipient)

    # ─── Deposit ───

    async def deposit(self, amount: int, token_id: int) -> list[Note]:
        if amount <= 0:
            raise InvalidAmountError(amount, "deposit amount must be positive")
        if self.settlement is None:
            raise UpstreamUnavailableError("submit_deposit", "no settlement system configured")

        receipt = await self.settlement.submit_deposit(amount, token_id, self.owner_key)
        await publish_receipt(self._publisher, receipt, self.enc_public_key, config.KIND_DEPOSIT)
        return list(receipt.output_notes)

    async def teardown(self) -> None:
        if isinstance(self._relay, RelayClient):
            await self._relay.aclose()
        if isinstance(self._overview_service, OverviewClient):
            await self._overview_service.aclose()
        if self._owns_keystore_client and self._keystore_client is not None:
            connection.close(self._keystore_client)
            self._keystore_client = None
