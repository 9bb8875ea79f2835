import pickle
import threading
import time
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from bookkeeping.core.logging import get_logger

logger = get_logger(__name__)


def connect_redis(redis_url: str | None) -> Redis | None:
    if not redis_url:
        return None
    try:
        client = Redis.from_url(redis_url, decode_responses=False)
        client.ping()
    except RedisError:
        logger.warning("Redis unavailable at start-up, using in-process state")
        return None
    return client


class ReportCache:
    """Short-lived cache for computed report payloads.

    Entries live in Redis when it is reachable, otherwise in a process-local
    dict. Every write to the ledger clears the whole namespace.
    """

    def __init__(self, redis_url: str | None = None, key_prefix: str = "madrasah") -> None:
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._key_prefix = key_prefix
        self._redis = connect_redis(redis_url)

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}:reports:{key}"

    @staticmethod
    def make_key(user_type: str, params: dict[str, Any]) -> str:
        parts = [f"{name}={params[name] if params[name] is not None else ''}" for name in sorted(params)]
        return f"{user_type}:" + "&".join(parts)

    def get(self, key: str) -> Any | None:
        if self._redis is not None:
            try:
                raw = self._redis.get(self._redis_key(key))
                if raw is not None:
                    return pickle.loads(raw)
            except (RedisError, pickle.PickleError, EOFError):
                logger.warning("Report cache read failed for %s", key)

        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            expires_at, value = entry
            if time.time() > expires_at:
                self._entries.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        ttl = max(1, ttl)
        if self._redis is not None:
            try:
                self._redis.setex(self._redis_key(key), ttl, pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL))
            except (RedisError, pickle.PickleError, TypeError):
                logger.warning("Report cache write failed for %s", key)

        with self._lock:
            self._entries[key] = (time.time() + ttl, value)

    def clear(self) -> None:
        if self._redis is not None:
            try:
                cursor = 0
                while True:
                    cursor, keys = self._redis.scan(cursor=cursor, match=self._redis_key("*"), count=200)
                    if keys:
                        self._redis.delete(*keys)
                    if cursor == 0:
                        break
            except RedisError:
                logger.warning("Report cache clear failed")

        with self._lock:
            self._entries.clear()
