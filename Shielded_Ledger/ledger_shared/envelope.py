"""
Versioned authenticated public-key envelope for note payloads.

Wire format (must stay bit-exact with other clients):

    base64( JSON { "v": 1, "epk": b64(32B ephemeral pk), "n": b64(24B nonce), "ct": b64(ct) } )

``ct`` is NaCl ``crypto_box`` output (Poly1305 MAC followed by the
XSalsa20 ciphertext).  Every envelope carries its own ephemeral public key
and nonce, so opening it needs nothing but the recipient's secret key.

Opening never raises: a malformed envelope, an unknown version and a failed
authentication all return ``None``.  Callers cannot tell "not for me" from
"corrupted" and must skip either way.
"""

import base64
import binascii
import json
from typing import Any, Optional, Union

import nacl.exceptions
import nacl.utils
from nacl.public import Box, PrivateKey, PublicKey

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.types import EncryptionKeypair


def b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def b64decode(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


def _coerce_public_key(public_key: Union[bytes, str]) -> PublicKey:
    if isinstance(public_key, str):
        public_key = b64decode(public_key)
    return PublicKey(public_key)


def encrypt(recipient_public_key: Union[bytes, str], plaintext: bytes) -> str:
    """Seal ``plaintext`` for the holder of ``recipient_public_key``."""
    recipient = _coerce_public_key(recipient_public_key)
    ephemeral = PrivateKey.generate()
    nonce = nacl.utils.random(config.BOX_NONCE_SIZE)

    sealed = Box(ephemeral, recipient).encrypt(plaintext, nonce)

    envelope = {
        "v": config.ENVELOPE_VERSION,
        "epk": b64encode(bytes(ephemeral.public_key)),
        "n": b64encode(nonce),
        "ct": b64encode(sealed.ciphertext),
    }
    return b64encode(json.dumps(envelope, separators=(",", ":")).encode("utf-8"))


def parse(envelope: str) -> Optional[tuple[bytes, bytes, bytes]]:
    """Return (ephemeral_pk, nonce, ciphertext) or None if the envelope is unusable."""
    try:
        env = json.loads(b64decode(envelope).decode("utf-8"))
        if not isinstance(env, dict):
            return None
        # bool and float compare equal to 1
        version = env.get("v")
        if type(version) is not int or version != config.ENVELOPE_VERSION:
            return None
        epk = b64decode(env["epk"])
        nonce = b64decode(env["n"])
        ct = b64decode(env["ct"])
    except (ValueError, TypeError, KeyError, binascii.Error, RecursionError):
        return None

    if len(epk) != config.BOX_PUBLIC_KEY_SIZE or len(nonce) != config.BOX_NONCE_SIZE:
        return None
    if len(ct) < config.BOX_MAC_SIZE:
        return None
    return epk, nonce, ct


def decrypt(envelope: str, secret_key: bytes) -> Optional[bytes]:
    """Open ``envelope`` with the local ``secret_key``; None on any failure."""
    parts = parse(envelope)
    if parts is None:
        return None
    epk, nonce, ct = parts

    try:
        box = Box(PrivateKey(secret_key), PublicKey(epk))
        return box.decrypt(ct, nonce)
    except (nacl.exceptions.CryptoError, ValueError, TypeError):
        return None


def encrypt_json(recipient_public_key: Union[bytes, str], obj: Any) -> str:
    payload = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    return encrypt(recipient_public_key, payload)


def decrypt_json(envelope: str, secret_key: bytes) -> Optional[Any]:
    plaintext = decrypt(envelope, secret_key)
    if plaintext is None:
        return None
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (ValueError, RecursionError):
        return None


class EnvelopeCodec:
    """Envelope operations bound to one local encryption keypair."""

    def __init__(self, keypair: EncryptionKeypair):
        self._keypair = keypair

    @property
    def public_key(self) -> bytes:
        return self._keypair.public_key

    @property
    def public_key_b64(self) -> str:
        return b64encode(self._keypair.public_key)

    def encrypt_for(self, recipient_public_key: Union[bytes, str], obj: Any) -> str:
        return encrypt_json(recipient_public_key, obj)

    def encrypt_for_self(self, obj: Any) -> str:
        return encrypt_json(self._keypair.public_key, obj)

    def decrypt(self, envelope: str) -> Optional[Any]:
        return decrypt_json(envelope, self._keypair.secret_key)
