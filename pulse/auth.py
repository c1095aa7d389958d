# pulse/auth.py
from __future__ import annotations
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from pulse.config import Settings, get_settings

log = logging.getLogger("pulse.auth")

class Unauthorized(Exception):
    def __init__(self, error: str = "unauthorized"):
        super().__init__(error)
        self.error = error

class ConfigurationError(Exception):
    """Raised when a secret needed to serve a request is not configured."""

class Forbidden(Exception):
    def __init__(self, error: str = "forbidden"):
        super().__init__(error)
        self.error = error

def sign_token(merchant_id: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        raise ConfigurationError("JWT_SECRET is not configured")
    if not merchant_id:
        raise ValueError("merchant id must not be empty")
    now = datetime.now(timezone.utc)
    claims = {
        "merchantId": merchant_id,
        "iat": now,
        "exp": now + timedelta(days=settings.token_ttl_days),
    }
    return jwt.encode(claims, secret, algorithm=settings.jwt_algorithm)

def authenticate(token: Optional[str], error: str = "unauthorized",
                 settings: Optional[Settings] = None) -> str:
    """Return the tenant id carried by a valid token, else raise Unauthorized(error)."""
    settings = settings or get_settings()
    secret = settings.jwt_secret.get_secret_value()
    if not token or not secret:
        raise Unauthorized(error)
    try:
        claims = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        log.info("token rejected (%s): %s", type(exc).__name__, exc)
        raise Unauthorized(error) from exc

    merchant_id = claims.get("merchantId")
    if not isinstance(merchant_id, str) or not merchant_id:
        log.info("token rejected: no merchantId claim")
        raise Unauthorized(error)
    return merchant_id

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    parts = (authorization or "").split(" ")
    return parts[1] if len(parts) > 1 else None

def check_admin_secret(provided: Optional[str], settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    expected = settings.admin_secret.get_secret_value()
    if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise Forbidden()
