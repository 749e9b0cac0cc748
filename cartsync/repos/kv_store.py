# cartsync/repos/kv_store.py
import time
from typing import Protocol

import redis
from redis.exceptions import RedisError

from cartsync.exceptions import StoreUnavailableError
from cartsync.utils.retry import redis_retry
from cartsync.utils.settings import REDIS_URL
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """
    -get / set / remove pojedynczego klucza
    -wartosci to stringi (JSON serializuje wyzej)
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Slownik w pamieci, TTL sprawdzany leniwie przy odczycie."""

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and deadline <= time.monotonic():
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        deadline = time.monotonic() + ttl if ttl is not None else None
        self._data[key] = (value, deadline)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class RedisStore:
    """Redis jako magazyn koszyka; retry przez tenacity, bledy jako StoreUnavailableError."""

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def _get(self, key: str):
        return self.redis.get(key)

    @redis_retry()
    def _set(self, key: str, value: str, ttl: int | None):
        #SET cart "{...}" EX 86400
        return self.redis.set(name=key, value=value, ex=ttl)

    @redis_retry()
    def _delete(self, key: str):
        return self.redis.delete(key)

    def get(self, key: str) -> str | None:
        try:
            return self._get(key)
        except RedisError as e:
            logger.error(f"Redis GET {key} failed: {e}")
            raise StoreUnavailableError(key, str(e)) from e

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            if ttl is not None and ttl <= 0:
                # EX 0 Redis odrzuca; wpis i tak od razu wygasa
                self._delete(key)
            else:
                self._set(key, value, ttl)
        except RedisError as e:
            logger.error(f"Redis SET {key} failed: {e}")
            raise StoreUnavailableError(key, str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self._delete(key)
        except RedisError as e:
            logger.error(f"Redis DEL {key} failed: {e}")
            raise StoreUnavailableError(key, str(e)) from e
