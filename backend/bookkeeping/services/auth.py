import hashlib
import hmac

from fastapi import HTTPException, Request
from passlib.hash import bcrypt

from bookkeeping.core.config import settings
from bookkeeping.core.logging import get_logger
from bookkeeping.services.state import login_throttle

logger = get_logger(__name__)

ADMIN = "admin"
TRIAL = "trial"


def get_client_ip(req: Request) -> str:
    forwarded = req.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = req.headers.get("x-real-ip", "")
    if real_ip:
        return real_ip.strip()
    if req.client:
        return req.client.host
    return "unknown"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, expected_hash: str) -> bool:
    """Check ``password`` against a SHA-256 hex digest or a bcrypt hash."""
    if expected_hash.startswith("$2"):
        if len(password.encode("utf-8")) > 72:
            return False
        return bcrypt.verify(password, expected_hash)
    return hmac.compare_digest(expected_hash.lower().encode("utf-8"), hash_password(password).encode("utf-8"))


def check_login(password: str, expected_hash: str | None = None) -> None:
    expected_hash = settings.admin_password_hash if expected_hash is None else expected_hash
    if not password:
        raise HTTPException(status_code=400, detail="Password is required")
    if not expected_hash:
        logger.error("Login attempted but ADMIN_PASSWORD_HASH is not set")
        raise HTTPException(status_code=500, detail="Server password is not configured")
    if not verify_password(password, expected_hash):
        raise HTTPException(status_code=401, detail="Invalid password")


def enforce_login_rate_limit(req: Request) -> None:
    client_ip = get_client_ip(req)
    if login_throttle.exceeded(f"ip:{client_ip}", settings.login_rate_limit, settings.login_rate_window):
        logger.warning("Login throttled for %s", client_ip)
        raise HTTPException(status_code=429, detail="Too many login attempts. Try again later.")


def clear_login_attempts(req: Request) -> None:
    login_throttle.reset(f"ip:{get_client_ip(req)}")


def require_session(req: Request) -> str:
    user_type = (req.session or {}).get("user_type")
    if user_type not in (ADMIN, TRIAL):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_type
