import secrets
import threading
import time

from redis.exceptions import RedisError

from bookkeeping.core.cache import connect_redis


class LoginThrottle:
    """Sliding-window counter of login attempts per key."""

    _REDIS_WINDOW_SCRIPT = """
local key = KEYS[1]
local now_ms = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]
local ttl = tonumber(ARGV[5])

redis.call("ZREMRANGEBYSCORE", key, 0, now_ms - window_ms)
if redis.call("ZCARD", key) >= limit then
  redis.call("EXPIRE", key, ttl)
  return 1
end

redis.call("ZADD", key, now_ms, member)
redis.call("EXPIRE", key, ttl)
return 0
"""

    def __init__(self, redis_url: str | None = None, key_prefix: str = "madrasah") -> None:
        self._attempts: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._key_prefix = key_prefix
        self._redis = connect_redis(redis_url)

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}:login:{key}"

    def _check_redis(self, key: str, limit: int, window_seconds: int) -> bool | None:
        if self._redis is None:
            return None
        now_ms = int(time.time() * 1000)
        try:
            result = self._redis.eval(
                self._REDIS_WINDOW_SCRIPT,
                1,
                self._redis_key(key),
                now_ms,
                window_seconds * 1000,
                limit,
                f"{now_ms}-{secrets.token_hex(6)}",
                window_seconds + 1,
            )
        except RedisError:
            return None
        return int(result or 0) == 1

    def exceeded(self, key: str, limit: int, window_seconds: int) -> bool:
        """Record one attempt for ``key`` and report whether it is over ``limit``."""
        limit = max(1, int(limit))
        window_seconds = max(1, int(window_seconds))

        redis_result = self._check_redis(key, limit, window_seconds)
        if redis_result is not None:
            return redis_result

        now = time.time()
        cutoff = now - window_seconds
        with self._lock:
            attempts = [ts for ts in self._attempts.get(key, []) if ts >= cutoff]
            if len(attempts) >= limit:
                self._attempts[key] = attempts
                return True
            attempts.append(now)
            self._attempts[key] = attempts
            return False

    def reset(self, key: str) -> None:
        if self._redis is not None:
            try:
                self._redis.delete(self._redis_key(key))
            except RedisError:
                pass
        with self._lock:
            self._attempts.pop(key, None)
