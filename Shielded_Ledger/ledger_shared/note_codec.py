"""
Note <-> JSON payload conversion and the note-level envelope helpers.

Payload shape (shared with other clients):

    {"note": {"amount": "0x..", "tokenId": "0x..",
              "ownerCipherPayPubKey": "0x<64 hex>",
              "randomness": {"r": "0x<64 hex>", "s": "0x<64 hex>"},
              "memo": "0x.."}}

Field elements are hex strings; ``s`` and ``memo`` are optional.
"""

from typing import Any, Optional, Union

from Shielded_Ledger.ledger_shared import envelope
from Shielded_Ledger.ledger_shared.errors import MalformedNoteError
from Shielded_Ledger.ledger_shared.types import Note, Randomness


def _hex(value: int) -> str:
    return "0x" + format(value, "x")


def _hex64(value: int) -> str:
    return "0x" + format(value, "x").rjust(64, "0")


def parse_field(value: Any, name: str, *, bare_hex: bool = True) -> int:
    """Parse an integer or a hex string into an int.

    With ``bare_hex`` a string without ``0x`` is still read as hex (message
    payloads); without it such strings are decimal (overview responses).
    """
    if isinstance(value, bool):
        raise MalformedNoteError(f"{name} is not numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text[:2].lower() == "0x":
                return int(text[2:], 16)
            return int(text, 16 if bare_hex else 10)
        except ValueError:
            raise MalformedNoteError(f"{name} is not a valid number: {value!r}")
    raise MalformedNoteError(f"{name} has unsupported type {type(value).__name__}")


def note_to_dict(note: Note) -> dict:
    randomness = {"r": _hex64(note.randomness.r)}
    if note.randomness.s is not None:
        randomness["s"] = _hex64(note.randomness.s)

    body = {
        "amount": _hex(note.amount),
        "tokenId": _hex(note.token_id),
        "ownerCipherPayPubKey": _hex64(note.owner_key),
        "randomness": randomness,
    }
    if note.memo is not None:
        body["memo"] = _hex(note.memo)
    return body


def note_from_dict(body: Any, *, bare_hex: bool = True) -> Note:
    if not isinstance(body, dict):
        raise MalformedNoteError("note is not an object")

    for required in ("amount", "tokenId", "ownerCipherPayPubKey", "randomness"):
        if body.get(required) is None:
            raise MalformedNoteError(f"missing {required}")

    randomness = body["randomness"]
    if not isinstance(randomness, dict) or randomness.get("r") is None:
        raise MalformedNoteError("missing randomness.r")

    amount = parse_field(body["amount"], "amount", bare_hex=bare_hex)
    if amount < 0:
        raise MalformedNoteError("negative amount")

    s = randomness.get("s")
    memo = body.get("memo")
    return Note(
        amount=amount,
        token_id=parse_field(body["tokenId"], "tokenId", bare_hex=bare_hex),
        owner_key=parse_field(body["ownerCipherPayPubKey"], "ownerCipherPayPubKey", bare_hex=bare_hex),
        randomness=Randomness(
            r=parse_field(randomness["r"], "randomness.r", bare_hex=bare_hex),
            s=parse_field(s, "randomness.s", bare_hex=bare_hex) if s is not None else None,
        ),
        memo=parse_field(memo, "memo", bare_hex=bare_hex) if memo is not None else None,
    )


def encode_payload(note: Note) -> dict:
    return {"note": note_to_dict(note)}


def decode_payload(payload: Any) -> Note:
    """Strict decoder; raises MalformedNoteError."""
    if not isinstance(payload, dict) or "note" not in payload:
        raise MalformedNoteError("payload has no note")
    return note_from_dict(payload["note"])


def encrypt_note_payload(recipient_public_key: Union[bytes, str], note: Note) -> str:
    return envelope.encrypt_json(recipient_public_key, encode_payload(note))


def decrypt_note_payload(envelope_text: str, secret_key: bytes) -> Optional[Note]:
    """Open and decode; decryption and parse failures both give None."""
    payload = envelope.decrypt_json(envelope_text, secret_key)
    if payload is None:
        return None
    try:
        return decode_payload(payload)
    except MalformedNoteError:
        return None
