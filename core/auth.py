"""
Bearer credential resolution.

Tokens are HS256 JWTs carrying the user id and role. Resolution never
touches the store: the claims are the identity.
"""
from datetime import timedelta
from typing import Optional

import jwt

from core.config import config
from core.errors import AuthenticationError
from core.logging import get_logger
from core.models.common import utc_now
from core.models.user import Identity

logger = get_logger("auth")

VALID_ROLES = ("buyer", "vendor")


class TokenAuthenticator:
    """Issue and resolve bearer tokens."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl_hours: Optional[int] = None,
    ):
        """
        Raises:
            ValueError: If no signing secret is given and JWT_SECRET is unset
        """
        self.secret = secret or config.JWT_SECRET
        if not self.secret:
            raise ValueError("JWT_SECRET is not set; refusing to sign tokens with an empty secret")
        self.algorithm = algorithm or config.JWT_ALGORITHM
        self.ttl = timedelta(hours=ttl_hours if ttl_hours is not None else config.TOKEN_TTL_HOURS)

    def issue(self, identity: Identity) -> str:
        now = utc_now()
        claims = {
            "sub": identity.user_id,
            "role": identity.role,
            "iat": now,
            "exp": now + self.ttl,
        }
        if identity.name:
            claims["name"] = identity.name
        if identity.email:
            claims["email"] = identity.email
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def resolve(self, token: Optional[str]) -> Identity:
        """
        Resolve a bearer credential to the caller's identity.

        Args:
            token: Raw token, optionally prefixed with "Bearer "

        Returns:
            Identity of the caller

        Raises:
            AuthenticationError: If the token is missing, expired or malformed
        """
        if not token:
            raise AuthenticationError("No token provided")
        if token.lower().startswith("bearer "):
            token = token[7:].strip()

        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.debug("Rejected bearer token", extra={"reason": str(e)})
            raise AuthenticationError("Invalid token") from e

        user_id = claims.get("sub")
        role = claims.get("role")
        if not user_id or role not in VALID_ROLES:
            raise AuthenticationError("Token is missing identity claims")

        return Identity(
            user_id=user_id,
            role=role,
            name=claims.get("name"),
            email=claims.get("email"),
        )

    def try_resolve(self, token: Optional[str]) -> Optional[Identity]:
        """Like resolve(), but returns None for anonymous or invalid tokens."""
        try:
            return self.resolve(token)
        except AuthenticationError:
            return None
