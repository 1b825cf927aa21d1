"""End-to-end wallet flows against in-memory relay, overview and settlement fakes."""

import random

import fakeredis
import pytest

from Shielded_Ledger.ledger_shared.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    KeyDerivationUnavailableWarning,
    UpstreamUnavailableError,
)
from Shielded_Ledger.ledger_shared.key_derivation import derive_keypair
from Shielded_Ledger.ledger_shared.types import Recipient
from Shielded_Ledger.wallet.plan import PlanState
from Shielded_Ledger.wallet.publisher import NotePublisher
from Shielded_Ledger.wallet.session import WalletSession

pytestmark = pytest.mark.asyncio

ALICE_KEY = 0xA11CE
BOB_KEY = 0xB0B
ALICE_SCALAR = 0x1111
BOB_SCALAR = 0x2222


@pytest.fixture
def redis_client():
    r = fakeredis.FakeRedis()
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def make_session(redis_client, relay, overview, settlement):
    def _make(identity, owner_key, scalar, max_retries=3, **overrides):
        params = dict(
            scalar=scalar,
            keystore_client=redis_client,
            relay=relay,
            overview_service=overview,
            settlement=settlement,
            publisher=NotePublisher(relay, max_retries=max_retries, base_delay=0),
            rng=random.Random(7),
        )
        params.update(overrides)
        session = WalletSession(identity, owner_key, **params)
        session.setup()
        return session
    return _make


@pytest.fixture
def alice(make_session):
    return make_session("alice", ALICE_KEY, ALICE_SCALAR)


@pytest.fixture
def bob(make_session):
    return make_session("bob", BOB_KEY, BOB_SCALAR)


def _recipient(session) -> Recipient:
    return Recipient(owner_key=session.owner_key, enc_public_key=session.enc_public_key)


# ── Setup ──

async def test_setup_derives_keypair(alice):
    assert alice.keys.deterministic is True
    assert alice.enc_public_key == derive_keypair(ALICE_SCALAR).public_key


async def test_setup_without_scalar_falls_back(make_session):
    with pytest.warns(KeyDerivationUnavailableWarning):
        session = make_session("eve", 0xE7E, None)
    assert session.keys.deterministic is False


# ── Deposit & overview ──

async def test_empty_wallet(alice):
    ov = await alice.refresh_overview()
    assert ov.balance == 0
    assert ov.total_notes == 0


async def test_deposit_shows_in_overview(alice, settlement):
    notes = await alice.deposit(10_000, token_id=0)
    assert settlement.deposits == [(10_000, 0, ALICE_KEY)]

    ov = await alice.refresh_overview()
    assert ov.balance == 10_000
    assert ov.spendable_notes == notes


async def test_deposit_rejects_non_positive(alice):
    with pytest.raises(InvalidAmountError):
        await alice.deposit(0, token_id=0)


async def test_deposit_without_settlement(make_session):
    session = make_session("frank", 0xF, 0x3333, settlement=None)
    with pytest.raises(UpstreamUnavailableError):
        await session.deposit(100, token_id=0)


# ── Transfer ──

async def test_partial_transfer(alice, bob, settlement):
    await alice.deposit(10_000, token_id=0)

    plan = await alice.transfer(4_000, _recipient(bob))

    assert plan.state == PlanState.COMPLETED
    assert len(settlement.transfers) == 1
    assert (await alice.refresh_overview()).balance == 6_000
    assert (await bob.refresh_overview()).balance == 4_000


async def test_exact_match_transfer_conserves_value(alice, bob):
    await alice.deposit(50_000, token_id=0)

    plan = await alice.transfer(50_000, _recipient(bob))
    split = plan.steps[0].split

    assert split.randomized is True
    alice_balance = (await alice.refresh_overview()).balance
    bob_balance = (await bob.refresh_overview()).balance
    assert alice_balance + bob_balance == 50_000
    assert bob_balance == split.recipient_amount


async def test_multi_note_transfer(alice, bob, settlement):
    for amount in (10_000, 20_000, 25_000):
        await alice.deposit(amount, token_id=0)

    plan = await alice.transfer(40_000, _recipient(bob))

    assert plan.state == PlanState.COMPLETED
    assert [s.input_note.amount for s in plan.steps] == [25_000, 20_000]
    assert len(settlement.transfers) == 2
    total = (await alice.refresh_overview()).balance + (await bob.refresh_overview()).balance
    assert total == 55_000


async def test_transfer_insufficient_balance(alice, bob, settlement):
    await alice.deposit(1_000, token_id=0)
    with pytest.raises(InsufficientBalanceError):
        await alice.transfer(5_000, _recipient(bob))
    assert settlement.transfers == []


# ── Failure & resume ──

async def test_settlement_failure_then_resume(alice, bob, settlement):
    await alice.deposit(10_000, token_id=0)
    plan = await alice.plan_transfer(3_000, _recipient(bob))

    settlement.fail_next = 1
    with pytest.raises(UpstreamUnavailableError):
        await alice.execute_plan(plan, _recipient(bob))
    assert plan.state == PlanState.FAILED
    assert settlement.transfers == []

    await alice.execute_plan(plan, _recipient(bob))
    assert plan.state == PlanState.COMPLETED
    assert len(settlement.transfers) == 1


async def test_resume_after_publish_failure_never_resubmits(make_session, relay, settlement):
    alice = make_session("alice", ALICE_KEY, ALICE_SCALAR, max_retries=1)
    bob = make_session("bob", BOB_KEY, BOB_SCALAR)
    await alice.deposit(10_000, token_id=0)
    plan = await alice.plan_transfer(3_000, _recipient(bob))

    relay.fail_next_posts = 1
    with pytest.raises(UpstreamUnavailableError):
        await alice.execute_plan(plan, _recipient(bob))
    assert plan.state == PlanState.FAILED
    assert plan.steps[0].settled
    assert len(settlement.transfers) == 1

    await alice.execute_plan(plan, _recipient(bob))
    assert plan.state == PlanState.COMPLETED
    assert len(settlement.transfers) == 1
    assert (await bob.refresh_overview()).balance == 3_000
    assert (await alice.refresh_overview()).balance == 7_000


async def test_teardown_with_fakes(alice):
    await alice.teardown()
