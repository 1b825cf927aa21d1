import time
from typing import Optional

import redis

from Shielded_Ledger.ledger_shared import config, errors
from Shielded_Ledger.ledger_shared.key_derivation import (
    derive_keypair,
    derive_or_fallback,
    is_consistent,
)
from Shielded_Ledger.ledger_shared.logging_config import get_logger
from Shielded_Ledger.ledger_shared.types import DerivedKeypair, EncryptionKeypair, KeyStoreEntry

logger = get_logger(__name__)


class LocalKeyStore:
    """Cached per-identity encryption keypair in Redis.

    The entry is read-mostly.  It is only written when absent or when
    ``validate_or_regenerate`` finds it corrupted, always inside a
    WATCH/MULTI transaction so concurrent writers cannot interleave.
    """

    def __init__(self, client: redis.Redis, identity_id: str,
                 mode: str = config.KEY_DERIVATION_MODE):
        self.db: redis.Redis = client
        self.identity_id = identity_id
        self.mode = mode

    def _store_key(self) -> str:
        return f"{config.KEYSTORE_KEY_PREFIX}:{self.identity_id}"

    def _serialize_entry(self, derived: DerivedKeypair) -> dict:
        return {
            "identity_id": self.identity_id,
            "public_key": derived.keypair.public_key,
            "secret_key": derived.keypair.secret_key,
            "deterministic": "1" if derived.deterministic else "0",
            "mode": derived.mode,
            "created_at": str(int(time.time() * 1000)),
        }

    def _deserialize_entry(self, data: dict[bytes, bytes]) -> Optional[KeyStoreEntry]:
        try:
            return KeyStoreEntry(
                identity_id=data[b"identity_id"].decode(),
                public_key=data[b"public_key"],
                secret_key=data[b"secret_key"],
                deterministic=data[b"deterministic"] == b"1",
                mode=data[b"mode"].decode(),
                created_at=int(data[b"created_at"]),
            )
        except (KeyError, ValueError):
            return None

    def _to_derived(self, entry: KeyStoreEntry) -> DerivedKeypair:
        return DerivedKeypair(
            keypair=EncryptionKeypair(public_key=entry.public_key, secret_key=entry.secret_key),
            deterministic=entry.deterministic,
            mode=entry.mode,
        )

    def _is_valid(self, entry: Optional[KeyStoreEntry], scalar: Optional[int]) -> bool:
        if entry is None:
            return False
        keypair = EncryptionKeypair(public_key=entry.public_key, secret_key=entry.secret_key)
        if not is_consistent(keypair):
            return False
        if scalar is not None and entry.deterministic and entry.mode == self.mode:
            return derive_keypair(scalar, self.mode) == keypair
        return True

    def load(self) -> Optional[DerivedKeypair]:
        try:
            data = self.db.hgetall(self._store_key())
        except redis.exceptions.ConnectionError:
            raise errors.KeyStoreUnavailableError("load")
        if not data:
            return None
        entry = self._deserialize_entry(data)
        if entry is None:
            return None
        return self._to_derived(entry)

    def exists(self) -> bool:
        try:
            return bool(self.db.exists(self._store_key()))
        except redis.exceptions.ConnectionError:
            raise errors.KeyStoreUnavailableError("exists")

    def get_or_create(self, scalar: Optional[int] = None) -> DerivedKeypair:
        """Return the cached keypair, creating it on first use."""
        cached = self.load()
        if cached is not None:
            return cached
        return self.validate_or_regenerate(scalar)

    def validate_or_regenerate(self, scalar: Optional[int] = None) -> DerivedKeypair:
        """Check the cached keypair and replace it if missing or corrupted.

        A stored random (non-deterministic) keypair that is internally
        consistent is kept even when ``scalar`` is now available, since notes
        may already be addressed to it.
        """
        full_key = self._store_key()
        try:
            with self.db.pipeline() as pipe:
                for _ in range(config.KEYSTORE_LOCK_RETRIES):
                    try:
                        pipe.watch(full_key)
                        data = pipe.hgetall(full_key)
                        entry = self._deserialize_entry(data) if data else None

                        if self._is_valid(entry, scalar):
                            pipe.unwatch()
                            return self._to_derived(entry)

                        if data:
                            logger.warning(
                                "Cached encryption keypair for %s is corrupted; regenerating",
                                self.identity_id,
                            )

                        derived = derive_or_fallback(scalar, self.mode)
                        pipe.multi()
                        pipe.delete(full_key)
                        pipe.hset(full_key, mapping=self._serialize_entry(derived))
                        pipe.execute()
                        return derived
                    except redis.exceptions.WatchError:
                        continue
        except redis.exceptions.ConnectionError:
            raise errors.KeyStoreUnavailableError("validate_or_regenerate")

        # Lost every race: another writer stored a fresh entry, use it.
        cached = self.load()
        if cached is None:
            raise errors.KeyStoreUnavailableError("validate_or_regenerate: concurrent writers")
        return cached

    def clear(self) -> bool:
        try:
            return bool(self.db.delete(self._store_key()))
        except redis.exceptions.ConnectionError:
            raise errors.KeyStoreUnavailableError("clear")
