# auth_service/guard.py
from typing import Optional

from fastapi import Header, Request

from .errors import Unauthenticated
from .security import Identity, TokenService


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) < 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


def authenticate(authorization: Optional[str], tokens: TokenService) -> Identity:
    """Missing credentials raise Unauthenticated; bad ones raise InvalidToken."""
    token = extract_bearer_token(authorization)
    if token is None:
        raise Unauthenticated()
    return tokens.verify(token)


def require_identity(
    request: Request, authorization: Optional[str] = Header(None)
) -> Identity:
    identity = authenticate(authorization, request.app.state.tokens)
    request.state.identity = identity
    return identity
