"""
Password hashing, bearer tokens and the request guards built on them.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from errors import Forbidden, InvalidToken, Unauthenticated
from schemas import utcnow

ACCESS = "access"
REFRESH = "refresh"

bearer_scheme = HTTPBearer(auto_error=False)


class PasswordHasher:
    """Salted bcrypt hashing. The plaintext is never stored or logged."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            # unrecognised or corrupt stored hash
            return False


@dataclass(frozen=True)
class Identity:
    user_id: str
    username: str


class TokenService:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue(
        self,
        identity: Identity,
        token_type: str = ACCESS,
        expires_in: Optional[timedelta] = None,
    ) -> str:
        if expires_in is None:
            expires_in = self.access_ttl if token_type == ACCESS else self.refresh_ttl
        now = utcnow()
        payload = {
            "userId": identity.user_id,
            "username": identity.username,
            "type": token_type,
            "jti": uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_pair(self, identity: Identity) -> dict:
        return {
            "token": self.issue(identity, ACCESS),
            "refreshToken": self.issue(identity, REFRESH),
        }

    def verify(self, token: str, expected_type: str = ACCESS) -> Identity:
        """Decode a token; bad signature, malformed input, expiry and a
        token of the wrong type all raise InvalidToken."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidToken() from exc
        if payload.get("type") != expected_type or not payload.get("userId"):
            raise InvalidToken()
        return Identity(user_id=payload["userId"], username=payload.get("username", ""))


class BearerAuth:
    """Dependency guarding protected routes. No header means 401, a header
    that does not verify means 403."""

    def __init__(self, tokens: TokenService):
        self.tokens = tokens

    async def __call__(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ) -> Identity:
        if credentials is None or not credentials.credentials:
            raise Unauthenticated()
        identity = self.tokens.verify(credentials.credentials)
        structlog.contextvars.bind_contextvars(user_id=identity.user_id)
        return identity


def require_roles(auth: BearerAuth, users, *roles: str):
    """Build a dependency that admits only callers whose stored role is one
    of ``roles``. The role is read per request so demotions apply at once."""

    def guard(identity: Identity = Depends(auth)) -> Identity:
        if users.role_of(identity.user_id) not in roles:
            raise Forbidden()
        return identity

    return guard
