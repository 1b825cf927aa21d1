"""
Command-line entry point for the shielded wallet.

    python -m Shielded_Ledger.wallet.cli keygen   --identity alice --scalar 0x1f...
    python -m Shielded_Ledger.wallet.cli overview --identity alice --owner-key 0xab... --scalar 0x1f...
    python -m Shielded_Ledger.wallet.cli plan     --amount 5000 --recipient-key 0xcd... --note 3000 --note 8000

Numbers accept decimal or 0x-prefixed hex.  ``plan`` is a dry run: nothing
is settled or published.
"""

import argparse
import asyncio
import random
import sys
from typing import Optional, Sequence

from Shielded_Ledger.ledger_db.connection import create_keystore_client
from Shielded_Ledger.ledger_db.keystore import LocalKeyStore
from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.envelope import b64encode
from Shielded_Ledger.ledger_shared.errors import LedgerError
from Shielded_Ledger.ledger_shared.logging_config import LOG_LEVEL, configure_logging, get_logger
from Shielded_Ledger.ledger_shared.note_codec import parse_field
from Shielded_Ledger.ledger_shared.types import Note, Randomness
from Shielded_Ledger.wallet.plan import TransferPlan, select_and_split
from Shielded_Ledger.wallet.relay import OverviewClient, RelayClient
from Shielded_Ledger.wallet.session import WalletSession

logger = get_logger(__name__)


def _number(text: str) -> int:
    try:
        return parse_field(text, "number", bare_hex=False)
    except LedgerError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shielded-wallet", description="Client-side shielded note ledger")
    parser.add_argument("--log-level", default=None, help="override SL_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="derive or load the encryption keypair")
    keygen.add_argument("--identity", required=True)
    keygen.add_argument("--scalar", type=_number, default=None, help="wallet secret scalar")
    keygen.add_argument("--mode", choices=sorted(config.VALID_DERIVATION_MODES), default=config.KEY_DERIVATION_MODE)
    keygen.add_argument("--reset", action="store_true", help="drop the stored keypair first")

    overview = sub.add_parser("overview", help="print the account overview from the relay")
    overview.add_argument("--identity", required=True)
    overview.add_argument("--owner-key", type=_number, required=True)
    overview.add_argument("--scalar", type=_number, default=None)
    overview.add_argument("--server", default=config.RELAY_BASE_URL)
    overview.add_argument("--token", default=config.RELAY_AUTH_TOKEN)
    overview.add_argument("--check-on-chain", action="store_true")

    plan = sub.add_parser("plan", help="dry-run note selection and output splitting")
    plan.add_argument("--amount", type=_number, required=True)
    plan.add_argument("--recipient-key", type=_number, required=True)
    plan.add_argument("--note", type=_number, action="append", default=[], dest="notes",
                      help="spendable note amount (repeatable)")
    plan.add_argument("--token-id", type=_number, default=config.DEFAULT_TOKEN_ID)
    plan.add_argument("--min-dust", type=_number, default=config.MIN_DUST_ATOMS)
    plan.add_argument("--seed", type=int, default=None, help="seed the split RNG for reproducible output")
    return parser


# ─── Commands ───


def cmd_keygen(args, keystore_client=None) -> int:
    client = keystore_client or create_keystore_client()
    store = LocalKeyStore(client, args.identity, mode=args.mode)
    if args.reset:
        store.clear()

    derived = store.validate_or_regenerate(args.scalar)
    print(f"identity:      {args.identity}")
    print(f"public key:    {b64encode(derived.keypair.public_key)}")
    print(f"deterministic: {derived.deterministic}")
    print(f"mode:          {derived.mode}")
    return 0


async def _overview(args, keystore_client=None):
    session = WalletSession(
        args.identity,
        args.owner_key,
        scalar=args.scalar,
        keystore_client=keystore_client,
        relay=RelayClient(args.server, args.token),
        overview_service=OverviewClient(args.server, args.token),
    )
    session.setup()
    try:
        return await session.refresh_overview(check_on_chain=args.check_on_chain)
    finally:
        await session.teardown()


def cmd_overview(args, keystore_client=None) -> int:
    ov = asyncio.run(_overview(args, keystore_client))
    print(f"balance:   {ov.balance}")
    print(f"spendable: {ov.spendable_count}/{ov.total_notes}")
    for status in ov.notes:
        flag = "spent" if status.is_spent else "unspent"
        print(f"  {status.nullifier_hex}  {status.amount:>20}  {flag}")
    return 0


def print_plan(plan: TransferPlan) -> None:
    print(f"transfer {plan.amount} over {len(plan.steps)} step(s)")
    for step in plan.steps:
        split = step.split
        to_recipient = "out1" if split.recipient_gets_out1 else "out2"
        print(
            f"  step {step.index + 1}: input={step.input_note.amount} "
            f"out1={split.out1.amount} out2={split.out2.amount} "
            f"recipient={to_recipient} ({split.recipient_amount}) change={split.change_amount}"
            + (" randomized" if split.randomized else "")
        )


def cmd_plan(args) -> int:
    spendable = [
        Note(amount=a, token_id=args.token_id, owner_key=0, randomness=Randomness(r=i + 1))
        for i, a in enumerate(args.notes)
    ]
    rng = random.Random(args.seed) if args.seed is not None else None
    plan = select_and_split(spendable, args.amount, args.recipient_key, min_dust=args.min_dust, rng=rng)
    print_plan(plan)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper() if args.log_level else LOG_LEVEL)

    try:
        if args.command == "keygen":
            return cmd_keygen(args)
        if args.command == "overview":
            return cmd_overview(args)
        return cmd_plan(args)
    except LedgerError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
