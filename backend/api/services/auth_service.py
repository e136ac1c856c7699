"""Session token verification for the embedded admin"""

import logging
from datetime import UTC, datetime, timedelta

import jwt

from countdown.models.timer import normalize_shop

logger = logging.getLogger(__name__)


class AuthService:
    """Verify the platform's admin session tokens (HS256 JWTs)

    The token is signed with the app secret, its ``aud`` is the app API key
    and ``dest`` carries the shop URL, which becomes the tenant key.
    """

    def __init__(
        self,
        api_secret: str,
        api_key: str = "",
        algorithm: str = "HS256",
        leeway: int = 10,
    ):
        if not api_secret:
            raise ValueError("App API secret cannot be empty")

        self.api_secret = api_secret
        self.api_key = api_key
        self.algorithm = algorithm
        self.leeway = leeway

    def create_session_token(self, shop: str, user_id: str = "1", expire_minutes: int = 1) -> str:
        """Issue a session token for *shop* (used by local tooling and tests)"""
        now = datetime.now(UTC)
        payload = {
            "iss": f"https://{shop}/admin",
            "dest": f"https://{shop}",
            "aud": self.api_key,
            "sub": user_id,
            "nbf": now,
            "iat": now,
            "exp": now + timedelta(minutes=expire_minutes),
        }
        return jwt.encode(payload, self.api_secret, algorithm=self.algorithm)

    def verify_session_token(self, token: str) -> str | None:
        """Return the shop a valid token was issued for, or None"""
        try:
            payload = jwt.decode(
                token,
                self.api_secret,
                algorithms=[self.algorithm],
                audience=self.api_key or None,
                options={"verify_aud": bool(self.api_key)},
                leeway=self.leeway,
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        dest = payload.get("dest")
        if not isinstance(dest, str):
            logger.warning("Session token missing dest")
            return None

        shop = normalize_shop(dest.removeprefix("https://").removeprefix("http://").rstrip("/"))
        if not shop:
            logger.warning("Session token dest has no shop")
            return None
        return shop
