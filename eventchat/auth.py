"""Caller identity resolution from bearer tokens."""

import logging
from typing import Optional

import jwt

logger = logging.getLogger(__name__)


class BearerTokenIdentityProvider:
    """Resolves an ``Authorization: Bearer <jwt>`` header to the token's subject.

    Tokens are issued elsewhere; this class only verifies the signature and
    expiry and hands the ``sub`` claim to the handlers.
    """

    def __init__(self, secret: str, algorithms: Optional[list[str]] = None, audience: Optional[str] = None):
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]
        self.audience = audience

    def identify(self, authorization: Optional[str]) -> Optional[str]:
        """Return the verified caller id, or None if the header is missing or invalid."""
        if not authorization:
            return None

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            logger.debug("Unsupported authorization scheme: %s", scheme)
            return None

        try:
            claims = jwt.decode(
                token.strip(),
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                options={"require": ["sub"], "verify_aud": self.audience is not None},
            )
        except jwt.PyJWTError as e:
            logger.info("Rejected bearer token: %s", e)
            return None

        subject = claims.get("sub")
        return str(subject) if subject else None
