from bookkeeping.core.cache import ReportCache
from bookkeeping.core.config import settings
from bookkeeping.core.rate_limit import LoginThrottle

report_cache = ReportCache(redis_url=settings.redis_url, key_prefix=settings.redis_prefix)
login_throttle = LoginThrottle(redis_url=settings.redis_url, key_prefix=settings.redis_prefix)
