"""
Dispatch coordinator.

Delivers one notification across the recipient's enabled channels and records the
per-channel outcome on the notification:

    pending/failed -> attempting -> sent | failed

Channel attempts run concurrently. Each attempt owns its own delivery slot, so results
are merged onto the notification only after every attempt has finished, and the final
status is written after that.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Mapping

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vaxwise.core.errors import ChannelDeliveryError, DispatchConflict, DispatchFailure, InvalidRecord
from vaxwise.db.models.notification import (
    DISPATCHABLE_STATUSES,
    Channel,
    ChannelDelivery,
    Notification,
)
from vaxwise.db.models.user import User
from vaxwise.services.channels import ChannelSender
from vaxwise.services.scheduling import utcnow

logger = logging.getLogger(__name__)

# Transient status held while a dispatch owns the notification.
ATTEMPTING = "attempting"

ALWAYS_SENT = "always_sent"
ANY_CHANNEL = "any_channel"
ALL_CHANNELS = "all_channels"
STATUS_POLICIES = (ALWAYS_SENT, ANY_CHANNEL, ALL_CHANNELS)

# Retries for the final write when a disjoint field (e.g. read flag) changed meanwhile.
MAX_MERGE_ATTEMPTS = 3


def resolve_final_status(policy: str, outcomes: list[ChannelDelivery]) -> str:
    if policy == ALWAYS_SENT:
        return "sent"
    if policy == ANY_CHANNEL:
        return "sent" if any(o.sent for o in outcomes) else "failed"
    if policy == ALL_CHANNELS:
        return "sent" if all(o.sent for o in outcomes) else "failed"
    raise ValueError(f"Unknown dispatch status policy: {policy}")


def enabled_channels(user: User) -> list[Channel]:
    prefs = {
        Channel.EMAIL: user.notify_email,
        Channel.SMS: user.notify_sms,
        Channel.PUSH: user.notify_push,
    }
    return [channel for channel, enabled in prefs.items() if enabled]


class DispatchCoordinator:
    def __init__(
        self,
        db: Session,
        senders: Mapping[Channel, ChannelSender],
        status_policy: str = ALWAYS_SENT,
        channel_timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if status_policy not in STATUS_POLICIES:
            raise ValueError(f"Unknown dispatch status policy: {status_policy}")
        self.db = db
        self.senders = senders
        self.status_policy = status_policy
        self.channel_timeout = channel_timeout
        self.clock = clock

    async def dispatch(self, notification: Notification) -> Notification:
        """
        Attempt delivery on every enabled channel and persist the outcome.

        Channel failures are recorded, never raised. Raises InvalidRecord when the
        notification is not dispatchable, DispatchConflict when another dispatch holds it,
        and DispatchFailure when the orchestration itself breaks.
        """
        if notification.status not in DISPATCHABLE_STATUSES:
            raise InvalidRecord(f"Notification in status '{notification.status}' cannot be dispatched")

        self._claim(notification)

        channels: list[Channel] = []
        results: list[ChannelDelivery | BaseException] = []
        try:
            user = self.db.get(User, notification.recipient_id)
            if user is None:
                raise LookupError(f"Recipient {notification.recipient_id} not found")

            channels = enabled_channels(user)
            results = await asyncio.gather(
                *(self._attempt(channel, user, notification) for channel in channels),
                return_exceptions=True,
            )
        except Exception as exc:
            self._fail(notification, {}, exc)

        outcomes: dict[Channel, ChannelDelivery] = {}
        unexpected: BaseException | None = None
        for channel, result in zip(channels, results):
            if isinstance(result, ChannelDelivery):
                outcomes[channel] = result
            elif unexpected is None:
                unexpected = result

        if unexpected is not None:
            self._fail(notification, outcomes, unexpected)

        status = resolve_final_status(self.status_policy, list(outcomes.values()))
        self._persist(notification, outcomes, status)
        logger.info(
            f"Notification {notification.notification_id} dispatched on "
            f"{[c.value for c in channels] or 'no channels'}: {status}"
        )
        return notification

    def _claim(self, notification: Notification) -> None:
        notification.status = ATTEMPTING
        notification.dispatch_attempts = (notification.dispatch_attempts or 0) + 1
        notification.dispatch_started_at = self.clock()
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise DispatchConflict(
                f"Notification {notification.notification_id} is already being dispatched"
            )

    async def _attempt(self, channel: Channel, user: User, notification: Notification) -> ChannelDelivery:
        sender = self.senders.get(channel)
        try:
            if sender is None:
                raise ChannelDeliveryError(channel.value, f"No sender configured for {channel.value}")
            if self.channel_timeout:
                try:
                    await asyncio.wait_for(sender.send(user, notification), timeout=self.channel_timeout)
                except asyncio.TimeoutError as exc:
                    raise ChannelDeliveryError(
                        channel.value, f"Timed out after {self.channel_timeout:g}s"
                    ) from exc
            else:
                await sender.send(user, notification)
        except ChannelDeliveryError as exc:
            logger.warning(
                f"Notification {notification.notification_id}: {channel.value} delivery failed: {exc.detail}"
            )
            return ChannelDelivery(sent=False, sent_at=None, error=exc.detail)

        return ChannelDelivery(sent=True, sent_at=self.clock(), error=None)

    def _fail(
        self,
        notification: Notification,
        outcomes: dict[Channel, ChannelDelivery],
        exc: BaseException,
    ) -> None:
        logger.error(
            f"Dispatch of notification {notification.notification_id} failed: {exc!r}",
            exc_info=exc,
        )
        # The failure may have left the session mid-transaction.
        self.db.rollback()
        self.db.refresh(notification)
        self._persist(notification, outcomes, "failed")
        raise DispatchFailure(f"Dispatch failed: {exc}", notification) from exc

    def _persist(
        self,
        notification: Notification,
        outcomes: dict[Channel, ChannelDelivery],
        status: str,
    ) -> None:
        # Copy-then-merge: on a concurrent write to other fields, reload and reapply ours.
        for attempt in range(1, MAX_MERGE_ATTEMPTS + 1):
            for channel, outcome in outcomes.items():
                notification.record_delivery(channel, outcome)
            notification.status = status
            try:
                self.db.commit()
                return
            except StaleDataError:
                self.db.rollback()
                if attempt == MAX_MERGE_ATTEMPTS:
                    raise
                self.db.refresh(notification)
