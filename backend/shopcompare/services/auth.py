import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
import jwt
from fastapi import status

from ..errors import AuthError, ConflictError, NotFoundError, store_errors
from ..models import User, UserPreferences
from ..store.base import USERS, DocumentStore
from .freshness import now_utc

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class AuthService:
    def __init__(
        self,
        store: DocumentStore,
        secret: str,
        expires: timedelta = timedelta(days=7),
        bcrypt_rounds: int = 12,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.secret = secret
        self.expires = expires
        self.bcrypt_rounds = bcrypt_rounds
        self.clock = clock

    def _issue_token(self, user: User) -> dict:
        now = self.clock()
        claims = {"userId": user.id, "email": user.email, "iat": now, "exp": now + self.expires}
        token = jwt.encode(claims, self.secret, algorithm=JWT_ALGORITHM)
        return {"token": token, "user_id": user.id, "email": user.email}

    async def _find_by_email(self, email: str) -> Optional[User]:
        with store_errors("look up user"):
            docs = await self.store.find_by_field(USERS, "email", email.lower())
        return User.model_validate(docs[0]) if docs else None

    async def register(self, name: str, email: str, password: str, preferences: Optional[UserPreferences] = None) -> dict:
        if await self._find_by_email(email):
            raise ConflictError("User with this email already exists")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds))
        now = self.clock()
        user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash.decode("utf-8"),
            preferences=preferences or UserPreferences(),
            created_at=now,
            updated_at=now,
        )
        with store_errors("create user"):
            doc = await self.store.insert(USERS, user.model_dump(exclude={"id"}))
        user = User.model_validate(doc)
        logger.info("User registered successfully: %s", user.email)
        return self._issue_token(user)

    async def login(self, email: str, password: str) -> dict:
        user = await self._find_by_email(email)
        if user is None or not bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8")):
            raise AuthError("Invalid credentials")
        logger.info("User logged in successfully: %s", user.email)
        return self._issue_token(user)

    async def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise AuthError("Access token required")
        try:
            claims = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as exc:
            raise AuthError("Invalid or expired token", status_code=status.HTTP_403_FORBIDDEN) from exc

        user_id = claims.get("userId")
        with store_errors("look up user"):
            doc = await self.store.find_by_id(USERS, user_id) if user_id else None
        if doc is None:
            raise AuthError("User not found")
        return User.model_validate(doc)

    async def get_profile(self, user_id: str) -> User:
        with store_errors("look up user"):
            doc = await self.store.find_by_id(USERS, user_id)
        if doc is None:
            raise NotFoundError("User not found")
        return User.model_validate(doc)

    async def update_preferences(self, user_id: str, preferences: UserPreferences) -> User:
        with store_errors("update preferences"):
            doc = await self.store.update_by_id(
                USERS, user_id, {"preferences": preferences.model_dump(), "updated_at": self.clock()}
            )
        if doc is None:
            raise NotFoundError("User not found")
        user = User.model_validate(doc)
        logger.info("User preferences updated: %s", user.email)
        return user
