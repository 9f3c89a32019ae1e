"""
Account Service - registration, login and the caller's own profile.

Passwords are hashed with bcrypt off the event loop. A successful
registration or login returns the stored user together with a freshly
issued bearer token.
"""
import asyncio
from typing import Optional, Tuple

import bcrypt

from core.auth import TokenAuthenticator
from core.config import config
from core.errors import AuthenticationError, ConflictError, NotFoundError
from core.logging import get_logger
from core.models.user import USERS_COLLECTION, Identity, LoginRequest, RegisterRequest, User
from core.store import EntityStore

logger = get_logger("accounts")


def hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AccountService:

    def __init__(self, store: EntityStore, authenticator: TokenAuthenticator, rounds: Optional[int] = None):
        self.store = store
        self.authenticator = authenticator
        self.rounds = rounds or config.BCRYPT_ROUNDS

    async def register(self, payload: RegisterRequest) -> Tuple[User, str]:
        """
        Create an account.

        Raises:
            ConflictError: If the email is already registered
        """
        email = payload.email.lower()
        if await self.store.find_one(USERS_COLLECTION, {"email": email}) is not None:
            raise ConflictError("User already exists")

        password_hash = await asyncio.to_thread(hash_password, payload.password, self.rounds)
        user = User(
            name=payload.name,
            email=email,
            phone=payload.phone,
            role=payload.role,
            password_hash=password_hash,
        )
        await self.store.insert_one(USERS_COLLECTION, user.to_dict_for_db())
        logger.info("Account registered", extra={"user_id": user.id, "role": user.role})
        return user, self.authenticator.issue(user.identity())

    async def login(self, payload: LoginRequest) -> Tuple[User, str]:
        """
        Raises:
            AuthenticationError: If the email is unknown or the password is wrong
        """
        document = await self.store.find_one(USERS_COLLECTION, {"email": payload.email.lower()})
        if document is None:
            raise AuthenticationError("Invalid credentials")
        user = User.model_validate(document)
        if not await asyncio.to_thread(check_password, payload.password, user.password_hash):
            logger.warning("Failed login", extra={"user_id": user.id})
            raise AuthenticationError("Invalid credentials")
        return user, self.authenticator.issue(user.identity())

    async def me(self, identity: Identity) -> User:
        document = await self.store.find_one(USERS_COLLECTION, {"_id": identity.user_id})
        if document is None:
            raise NotFoundError("User", identity.user_id)
        return User.model_validate(document)
