"""Module: security."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from vaxwise.core.config import settings

VALID_ROLES = {"FARMER", "VET", "ADMIN"}
# Role allowed to act on any farmer's or vet's records.
OVERRIDE_ROLE = "ADMIN"
ACCESS_TOKEN_TTL = timedelta(hours=12)


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == OVERRIDE_ROLE

    def can_act_for(self, user_id: uuid.UUID) -> bool:
        return self.is_admin or self.user_id == user_id


def create_access_token(user_id: uuid.UUID, role: str, expires_in: timedelta = ACCESS_TOKEN_TTL) -> str:
    """
    Issue an HS256 bearer token for a user.

    Login lives in the auth service; this is used by operator scripts and tests.
    """
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role.upper(),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    """
    Verify a bearer token and return the principal it names.

    Raises ValueError for bad signatures, expired tokens and unknown roles.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError(f"Invalid token: {exc}") from exc

    role = str(claims.get("role") or "").upper()
    if role not in VALID_ROLES:
        raise ValueError("Invalid token: unknown role")

    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise ValueError("Invalid token: subject is not a user id") from exc

    return Principal(user_id=user_id, role=role)
