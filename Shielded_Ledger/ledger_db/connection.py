import redis
from Shielded_Ledger.ledger_shared import errors, config


def create_keystore_client() -> redis.Redis:
    r = redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_KEYSTORE_DB,
        decode_responses=False,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
    )
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        raise errors.KeyStoreUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


def health_check(keystore_client) -> bool:
    try:
        return bool(keystore_client.ping())
    except redis.exceptions.ConnectionError:
        return False


def close(keystore_client) -> None:
    keystore_client.close()
