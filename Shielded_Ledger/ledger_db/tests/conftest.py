import pytest
import fakeredis

from Shielded_Ledger.ledger_db.keystore import LocalKeyStore

SCALAR = 0x0F1E2D3C4B5A69788796A5B4C3D2E1F00112233445566778899AABBCCDDEEFF


@pytest.fixture
def keystore_client():
    r = fakeredis.FakeRedis()
    yield r
    r.flushdb()
    r.close()


@pytest.fixture
def keystore(keystore_client):
    return LocalKeyStore(keystore_client, "alice")


@pytest.fixture
def scalar():
    return SCALAR
