import os
from dataclasses import dataclass

DATABASE_URL_ENV_VARS = (
    "DATABASE_URL",
    "NEON_CONNECTION_STRING",
    "NETLIFY_DB_URL",
    "NETLIFY_DATABASE_URL",
)


@dataclass(frozen=True)
class Settings:
    database_url: str
    redis_url: str | None
    redis_prefix: str
    session_secret: str
    cookie_secure: bool
    admin_password_hash: str
    trial_enabled: bool
    tz: str
    log_level: str
    report_cache_ttl: int
    login_rate_limit: int
    login_rate_window: int
    db_pool_min: int
    db_pool_max: int
    db_pool_timeout: float
    db_pool_max_waiting: int


def get_database_url() -> str:
    for name in DATABASE_URL_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return ""


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    database_url = get_database_url()
    session_secret = os.getenv("SESSION_SECRET")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required")
    if not session_secret:
        raise RuntimeError("SESSION_SECRET is required")

    db_pool_min = max(1, int(os.getenv("DB_POOL_MIN", "1")))
    db_pool_max = max(db_pool_min, int(os.getenv("DB_POOL_MAX", "5")))

    return Settings(
        database_url=database_url,
        redis_url=(os.getenv("REDIS_URL") or "").strip() or None,
        redis_prefix=(os.getenv("REDIS_PREFIX") or "madrasah").strip() or "madrasah",
        session_secret=session_secret,
        cookie_secure=env_flag("COOKIE_SECURE", False),
        admin_password_hash=(os.getenv("ADMIN_PASSWORD_HASH") or "").strip(),
        trial_enabled=env_flag("TRIAL_ENABLED", True),
        tz=os.getenv("TZ", "Asia/Kolkata"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        report_cache_ttl=max(1, int(os.getenv("REPORT_CACHE_TTL", "30"))),
        login_rate_limit=int(os.getenv("LOGIN_RATE_LIMIT", "10")),
        login_rate_window=int(os.getenv("LOGIN_RATE_WINDOW", "300")),
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        db_pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", "30")),
        db_pool_max_waiting=int(os.getenv("DB_POOL_MAX_WAITING", "50")),
    )


settings = load_settings()
