"""Signed, expiring session tokens.

Tokens are HS256 JWTs carrying the user id as ``sub``. Nothing is stored
server side: a token is valid for as long as its signature checks out and
``exp`` lies in the future, logging out only drops the cookie.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

DEFAULT_LIFETIME_SECONDS = 3600 * 24


class ConfigurationError(RuntimeError):
    pass


class TokenService:
    algorithm = "HS256"

    def __init__(self, secret: Optional[str], lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS):
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError(
                "JWT_SECRET environment variable must be set; session tokens cannot be signed without it."
            )
        self._secret = secret
        self.lifetime_seconds = lifetime_seconds

    def issue(self, user_id: int, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            # PyJWT insists on a string subject
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.lifetime_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[int]:
        """Return the user id the token was issued for, or None.

        Malformed, tampered and expired tokens all come back as None; the
        caller treats them exactly like a missing session.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as exc:
            logger.info("Session token rejected: %s", exc)
            return None
        try:
            return int(payload["sub"])
        except (TypeError, ValueError):
            logger.info("Session token rejected: non-numeric subject")
            return None
