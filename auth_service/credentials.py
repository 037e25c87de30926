# auth_service/credentials.py
"""
Credential Store: the only place that creates users or writes password hashes.

Plaintext passwords enter through ``register`` and ``reset_password`` and are
hashed before they touch a ``User`` row. Reset tokens are handed back to the
caller once; only their SHA-256 digest is persisted.
"""
from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import (
    Conflict,
    InvalidOrExpiredToken,
    NotFound,
    ResetDeliveryFailed,
    Unauthorized,
)
from .models import Role, User, utcnow
from .security import (
    RESET_TOKEN_TTL,
    PasswordHasher,
    generate_reset_token,
    hash_reset_token,
)

# Called with the user and the plaintext reset token; raising aborts the reset.
ResetDelivery = Callable[[User, str], None]


class CredentialStore:
    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        clock: Callable = utcnow,
        logger=None,
    ):
        self.db = db
        self.hasher = hasher
        self.clock = clock
        self.logger = logger or structlog.get_logger(__name__)

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def _apply_password(self, user: User, password: str) -> None:
        user.password_hash = self.hasher.hash(password)

    def register(self, name: str, email: str, password: str, role: Role = Role.USER) -> User:
        if self._find_by_email(email) is not None:
            raise Conflict()

        user = User(name=name, email=email, role=Role(role))
        self._apply_password(user, password)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent signup with the same email
            self.db.rollback()
            raise Conflict() from e
        self.db.refresh(user)

        self.logger.info("user_registered", user_id=user.id, email=user.email)
        return user

    def verify_credentials(self, email: str, password: str) -> User:
        user = self._find_by_email(email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            raise Unauthorized()
        return user

    def get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def request_password_reset(
        self, email: str, deliver: Optional[ResetDelivery] = None
    ) -> Optional[str]:
        """
        Issue a reset token for ``email``.

        Returns None when no account matches so callers can answer the same
        way in both cases.
        """
        user = self._find_by_email(email)
        if user is None:
            return None

        token = generate_reset_token()
        user.password_reset_token = hash_reset_token(token)
        user.password_reset_expires = self.clock() + RESET_TOKEN_TTL
        self.db.commit()

        if deliver is not None:
            try:
                deliver(user, token)
            except Exception as e:
                user.clear_password_reset()
                self.db.commit()
                self.logger.error(
                    "password_reset_delivery_failed", user_id=user.id, error=str(e)
                )
                raise ResetDeliveryFailed() from e

        self.logger.info("password_reset_requested", user_id=user.id)
        return token

    def reset_password(self, token: str, new_password: str) -> User:
        user = self.db.execute(
            select(User).where(
                User.password_reset_token == hash_reset_token(token),
                User.password_reset_expires > self.clock(),
            )
        ).scalar_one_or_none()
        if user is None:
            raise InvalidOrExpiredToken()

        self._apply_password(user, new_password)
        user.clear_password_reset()
        self.db.commit()

        self.logger.info("password_reset_completed", user_id=user.id)
        return user
