"""Module: errors.

Domain errors raised by the scheduling, reminder and dispatch services. Each carries the
HTTP status the API layer answers with; ``vaxwise.main`` installs the handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vaxwise.db.models.notification import Notification


class VaxwiseError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(VaxwiseError):
    """Referenced animal, vaccine or notification is missing or not visible to the caller."""

    status_code = 404


class AuthorizationError(VaxwiseError):
    """Caller is neither the owner/recipient nor holds an overriding role."""

    status_code = 403


class InvalidRecord(VaxwiseError):
    """Malformed input: missing required date, bad enum value, broken date ordering."""

    status_code = 422


class DuplicateReminder(VaxwiseError):
    status_code = 409


class DispatchConflict(VaxwiseError):
    """Another dispatch claimed the same notification first."""

    status_code = 409


class ChannelDeliveryError(VaxwiseError):
    """A single channel send failed. Recorded on the notification, never raised to callers."""

    status_code = 502

    def __init__(self, channel: str, detail: str):
        super().__init__(detail)
        self.channel = channel


class DispatchFailure(VaxwiseError):
    """Dispatch orchestration broke outside a channel attempt.

    The notification has already been persisted with status ``failed`` and whatever
    channel results were recorded before the failure.
    """

    status_code = 502

    def __init__(self, detail: str, notification: Notification):
        super().__init__(detail)
        self.notification = notification
