# auth_service/security.py
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .errors import InvalidToken
from .models import Role

RESET_TOKEN_BYTES = 32
RESET_TOKEN_TTL = timedelta(minutes=10)


@dataclass(frozen=True)
class Identity:
    """Subject id and role recovered from a verified token."""

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# --- Password Hashing ---
class PasswordHasher:
    def __init__(self, rounds: int = 10):
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        return self._context.verify(plain_password, hashed_password)


# --- Reset Tokens ---
def generate_reset_token() -> str:
    return secrets.token_hex(RESET_TOKEN_BYTES)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# --- Identity Tokens ---
class TokenService:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_in: timedelta = timedelta(hours=24),
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(
        self, user_id: str, role: Role, expires_delta: Optional[timedelta] = None
    ) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else self.expires_in)
        payload = {
            "sub": str(user_id),
            "role": Role(role).value,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidToken() from e

        subject = payload.get("sub")
        if not subject:
            raise InvalidToken()
        try:
            role = Role(payload.get("role"))
        except ValueError as e:
            raise InvalidToken() from e
        return Identity(id=subject, role=role)
