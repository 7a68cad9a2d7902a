"""Signed session tokens for the jwt cookie."""

import logging
from typing import Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class SignedTokenManager:
    """
    Issues and verifies HMAC-SHA256 signed tokens carrying only an email.

    Format: b64url(header).b64url({"email": ...}).b64url(signature). There is
    no expiry claim, the cookie Max-Age bounds the session instead.
    """

    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def create_token(self, email: str) -> str:
        return jwt.encode({"email": email}, self.secret_key, algorithm=ALGORITHM)

    def verify_token(self, token: Optional[str]) -> Optional[str]:
        """
        Verify a token's signature.

        Returns:
            The email in the payload, or None if the token is missing or invalid
        """
        if not token:
            return None

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.warning(f"Rejected token: {e}")
            return None

        email = payload.get("email")
        return email if isinstance(email, str) and email else None
