"""Module: send_due_reminders.

Dispatch every pending notification whose scheduled time has arrived. Meant to run from
cron or a k8s CronJob:

    python -m vaxwise.scripts.send_due_reminders --limit 500 --reset-stale-after 30

With ``--reset-stale-after`` a notification left in ``attempting`` by a worker that died
mid-dispatch for longer than that many minutes is returned to ``pending`` first, so the
same run picks it up again.
"""

import argparse
import asyncio
import logging
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from vaxwise.core.config import settings
from vaxwise.core.errors import DispatchConflict, DispatchFailure
from vaxwise.db.models.notification import Notification
from vaxwise.db.session import SessionLocal
from vaxwise.services.channels import build_channel_senders
from vaxwise.services.dispatch import ATTEMPTING, DispatchCoordinator
from vaxwise.services.scheduling import utcnow

logger = logging.getLogger("vaxwise.scripts.send_due_reminders")


def reset_stale_dispatches(session: Session, older_than: timedelta) -> int:
    cutoff = utcnow() - older_than
    # Bumping the version makes a still-running dispatcher merge instead of overwrite.
    result = session.execute(
        update(Notification)
        .where(
            Notification.status == ATTEMPTING,
            Notification.dispatch_started_at.is_not(None),
            Notification.dispatch_started_at <= cutoff,
        )
        .values(status="pending", version_id=Notification.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    if result.rowcount:
        logger.warning(f"Reset {result.rowcount} notification(s) stuck in '{ATTEMPTING}' since before {cutoff}")
    return result.rowcount


async def send_due_reminders(
    limit: int = 500,
    senders=None,
    reset_stale_after: timedelta | None = None,
) -> dict[str, int]:
    counts = {"sent": 0, "failed": 0, "skipped": 0, "reset": 0}
    session = SessionLocal()
    try:
        if reset_stale_after is not None:
            counts["reset"] = reset_stale_dispatches(session, reset_stale_after)

        coordinator = DispatchCoordinator(
            session,
            senders or build_channel_senders(settings),
            status_policy=settings.dispatch_status_policy,
            channel_timeout=settings.channel_timeout_seconds,
        )
        due = session.execute(
            select(Notification)
            .where(Notification.status == "pending", Notification.scheduled_for <= utcnow())
            .order_by(Notification.scheduled_for.asc())
            .limit(limit)
        ).scalars().all()

        for notification in due:
            try:
                notification = await coordinator.dispatch(notification)
            except DispatchConflict:
                counts["skipped"] += 1
                continue
            except DispatchFailure:
                counts["failed"] += 1
                continue
            counts["sent" if notification.status == "sent" else "failed"] += 1
    finally:
        session.close()
    return counts


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dispatch pending reminders that are due.")
    parser.add_argument("--limit", type=int, default=500)
    parser.add_argument(
        "--reset-stale-after",
        type=int,
        default=None,
        metavar="MINUTES",
        help="Return notifications stuck in 'attempting' for this long to 'pending' before dispatching.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper())
    stale_after = timedelta(minutes=args.reset_stale_after) if args.reset_stale_after is not None else None
    result = asyncio.run(send_due_reminders(args.limit, reset_stale_after=stale_after))
    print(
        f"Due reminders: {result['sent']} sent, {result['failed']} failed, "
        f"{result['skipped']} skipped, {result['reset']} reset."
    )
