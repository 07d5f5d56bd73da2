"""Module: deps."""

import uuid
from functools import lru_cache
from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from vaxwise.core.config import settings
from vaxwise.core.security import Principal, decode_access_token
from vaxwise.db.models.notification import Channel
from vaxwise.db.session import SessionLocal
from vaxwise.services.channels import ChannelSender, build_channel_senders
from vaxwise.services.dispatch import DispatchCoordinator

# Dependency provider: one DB session per request lifecycle.
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Validate and coerce UUID inputs from query/path payloads.
def parse_uuid(value: str, field_name: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} (must be UUID)")


def get_current_principal(authorization: str | None = Header(default=None)) -> Principal:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    try:
        return decode_access_token(parts[1].strip())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


@lru_cache
def get_channel_senders() -> dict[Channel, ChannelSender]:
    return build_channel_senders(settings)


def get_dispatch_coordinator(
    db: Session = Depends(get_db),
    senders: dict[Channel, ChannelSender] = Depends(get_channel_senders),
) -> DispatchCoordinator:
    return DispatchCoordinator(
        db,
        senders,
        status_policy=settings.dispatch_status_policy,
        channel_timeout=settings.channel_timeout_seconds,
    )
