from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .errors import AuthError

ALGORITHM = "HS256"

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_ctx.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_ctx.verify(plain, hashed)


def create_token(user_id: int, secret: str, expires_seconds: int, now: Optional[datetime] = None) -> str:
    issued = now or datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "exp": issued + timedelta(seconds=expires_seconds)}
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> int:
    """Return the user id carried by a token; raises AuthError if it is invalid or expired."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthError("invalid token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthError("invalid token")


class Authenticator:
    """Issues and verifies bearer tokens signed with one secret."""

    def __init__(self, secret: str, expires_seconds: int):
        self.secret = secret
        self.expires_seconds = expires_seconds

    def issue(self, user_id: int) -> str:
        return create_token(user_id, self.secret, self.expires_seconds)

    def authenticate(self, authorization: Optional[str]) -> int:
        if not authorization:
            raise AuthError("authorization header is required")
        parts = authorization.split(" ")
        if len(parts) != 2 or parts[0] != "Bearer":
            raise AuthError("invalid authorization header format")
        return decode_token(parts[1], self.secret)
