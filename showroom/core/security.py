import hashlib
import hmac
import secrets
import time
from typing import Optional

from showroom.core.config import settings

PBKDF2_ROUNDS = 120_000

def hash_password(password: str, salt: str = None) -> str:
    """Returns "salt$hexdigest" (PBKDF2-SHA256)."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"

def verify_password(password: str, stored: str) -> bool:
    if not stored or "$" not in stored:
        return False
    salt, _ = stored.split("$", 1)
    return hmac.compare_digest(hash_password(password, salt), stored)

def _sign(payload: str) -> str:
    return hmac.new(settings.SECRET_KEY.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()

def create_session_token(user_id: str, issued_at: int = None) -> str:
    # Token format: "{user_id}.{issued_at}.{hmac}"
    if issued_at is None:
        issued_at = int(time.time())
    payload = f"{user_id}.{issued_at}"
    return f"{payload}.{_sign(payload)}"

def read_session_token(token: Optional[str], now: int = None) -> Optional[str]:
    """
    Returns the user id carried by a valid token, None otherwise.

    Tokens whose signed issue time is older than SESSION_MAX_AGE are rejected
    whatever the cookie's own max_age says.
    """
    if not token or token.count(".") < 2:
        return None
    payload, signature = token.rsplit(".", 1)
    if not hmac.compare_digest(_sign(payload), signature):
        return None
    user_id, issued_at = payload.rsplit(".", 1)
    if not user_id or not issued_at.isdigit():
        return None
    now = int(time.time()) if now is None else now
    if now - int(issued_at) > settings.SESSION_MAX_AGE:
        return None
    return user_id
