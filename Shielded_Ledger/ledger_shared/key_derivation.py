"""
Per-identity encryption keypair derivation.

An identity's 256-bit private scalar (derived from a wallet signature) is
reduced mod 2^256, serialized little-endian into 32 bytes and used as the
secret key of a Curve25519 ``box`` keypair.  Any implementation holding the
same scalar recomputes a byte-identical keypair, so no private key ever has
to leave the device.

Modes:
  direct → the 32 seed bytes are the X25519 secret key (interoperable
           with tweetnacl ``box.keyPair.fromSecretKey``)
  hkdf   → the seed bytes are first expanded with HKDF-SHA256 under a
           fixed domain-separation label
"""

import warnings
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from nacl.public import PrivateKey

from Shielded_Ledger.ledger_shared import config
from Shielded_Ledger.ledger_shared.errors import (
    InvalidDerivationModeError,
    KeyDerivationUnavailableWarning,
)
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.types import DerivedKeypair, EncryptionKeypair

logger = get_logger(__name__)

MODE_RANDOM = "random"


def scalar_to_seed(scalar: int, mode: str = config.KEY_DERIVATION_MODE) -> bytes:
    """Turn an identity scalar into 32 bytes of X25519 secret key material.

    This is the only place where identity key material crosses into the
    encryption domain.
    """
    if mode not in config.VALID_DERIVATION_MODES:
        raise InvalidDerivationModeError(mode)

    raw = (scalar % config.SCALAR_MODULUS).to_bytes(32, "little")
    if mode == "direct":
        return raw

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=config.BOX_SECRET_KEY_SIZE,
        salt=None,
        info=config.HKDF_INFO,
    )
    return hkdf.derive(raw)


def keypair_from_secret(secret_key: bytes) -> EncryptionKeypair:
    sk = PrivateKey(secret_key)
    return EncryptionKeypair(public_key=bytes(sk.public_key), secret_key=bytes(sk))


def derive_keypair(scalar: int, mode: str = config.KEY_DERIVATION_MODE) -> EncryptionKeypair:
    """Deterministic keypair for ``scalar``; identical bytes on every call."""
    return keypair_from_secret(scalar_to_seed(scalar, mode))


def generate_random_keypair() -> EncryptionKeypair:
    sk = PrivateKey.generate()
    return EncryptionKeypair(public_key=bytes(sk.public_key), secret_key=bytes(sk))


def derive_or_fallback(
    scalar: Optional[int],
    mode: str = config.KEY_DERIVATION_MODE,
) -> DerivedKeypair:
    """Derive from ``scalar`` when present, otherwise fall back to a random keypair.

    The fallback is reported through a ``KeyDerivationUnavailableWarning``
    and ``deterministic=False`` on the result; it never raises.
    """
    if scalar is not None:
        return DerivedKeypair(
            keypair=derive_keypair(scalar, mode),
            deterministic=True,
            mode=mode,
        )

    logger.warning(
        "Identity scalar unavailable; using a random encryption keypair. "
        "Senders deriving this identity's key will not reach it."
    )
    warnings.warn(
        "encryption keypair is not derived from the identity scalar",
        KeyDerivationUnavailableWarning,
        stacklevel=2,
    )
    return DerivedKeypair(
        keypair=generate_random_keypair(),
        deterministic=False,
        mode=MODE_RANDOM,
    )


def is_consistent(keypair: EncryptionKeypair) -> bool:
    """True if both halves have the right size and the public key matches the secret."""
    if len(keypair.public_key) != config.BOX_PUBLIC_KEY_SIZE:
        return False
    if len(keypair.secret_key) != config.BOX_SECRET_KEY_SIZE:
        return False
    return bytes(PrivateKey(keypair.secret_key).public_key) == keypair.public_key
