import base64
import binascii
import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, HTTPException, status

from lankatours import settings
from lankatours.models import Identity
from lankatours.services.errors import NotFoundError
from lankatours.services.marketplace import marketplace

logger = logging.getLogger(__name__)


def _encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _sign(payload: bytes) -> bytes:
    return hmac.new(settings.AUTH_SECRET.encode("utf-8"), payload, hashlib.sha256).digest()


def create_access_token(user_id: str, ttl_hours: int = settings.AUTH_TOKEN_TTL_HOURS) -> tuple[str, str]:
    """Return a signed ``user_id|expiry`` token and its expiry as an ISO timestamp."""
    expiry = datetime.now(timezone.utc) + timedelta(hours=ttl_hours)
    payload = f"{user_id}|{int(expiry.timestamp())}".encode("utf-8")
    return f"{_encode(payload)}.{_encode(_sign(payload))}", expiry.isoformat()


def token_user_id(token: str) -> Optional[str]:
    """User id carried by a valid, unexpired token; None for anything else."""
    try:
        payload_part, signature_part = token.split(".", 1)
        payload = _decode(payload_part)
        if not hmac.compare_digest(_decode(signature_part), _sign(payload)):
            return None
        user_id, expires = payload.decode("utf-8").split("|", 1)
        if datetime.now(timezone.utc).timestamp() > int(expires):
            return None
    except (ValueError, binascii.Error):
        # UnicodeDecodeError is a ValueError too.
        return None
    return user_id or None


def current_identity(authorization: Optional[str] = Header(default=None)) -> Identity:
    """Resolve the bearer token to the caller and their current role, read fresh on every request."""
    scheme, _, token = (authorization or "").partition(" ")
    user_id = token_user_id(token.strip()) if scheme.lower() == "bearer" else None
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing bearer token")
    try:
        return marketplace.accounts.identity(user_id)
    except NotFoundError:
        logger.warning("Token presented for unknown user %s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
