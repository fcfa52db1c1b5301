"""
DocPanel - Security Module
==========================
Salted HMAC hashing for IPs and preview/project passwords, random
capability tokens and admin JWTs.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from docpanel.core.config import get_settings

settings = get_settings()

# ── Salted hashes ──

def hmac_sha256(value: str, salt: Optional[str] = None) -> Optional[str]:
    """Hex HMAC-SHA256 of value under the server salt. None when either side is missing."""
    key = settings.ip_hash_salt if salt is None else salt
    if not value or not key:
        return None
    return hmac.new(key.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()


def hash_ip(ip: Optional[str]) -> Optional[str]:
    return hmac_sha256(ip or "")


def hash_secret_password(password: str) -> Optional[str]:
    """Hash a preview or project password. Whitespace-only means no password."""
    if not password or not password.strip():
        return None
    return hmac_sha256(password)


def verify_secret_password(password: str, stored_hash: Optional[str]) -> bool:
    if not password or not stored_hash:
        return False
    candidate = hmac_sha256(password)
    if candidate is None:
        return False
    return hmac.compare_digest(candidate, stored_hash)


def generate_token(num_bytes: int = 32) -> str:
    """Random capability token rendered as hex (32 bytes -> 64 chars)."""
    return secrets.token_hex(num_bytes)


# ── Admin JWTs ──

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 12
TOKEN_TYPE = "docpanel-admin"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        **data,
        "typ": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Claims of a valid admin token, or None for anything else."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if claims.get("typ") != TOKEN_TYPE:
        return None
    return claims
