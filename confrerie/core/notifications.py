"""Notification fan-out and the polling drain."""

from __future__ import annotations

from .models import Document, Notification, NotificationType, new_id, now_ts
from .normalize import cut

DEFAULT_BATCH = 15


def push_notification(
    doc: Document,
    to_user_id: str,
    kind: NotificationType,
    title: str,
    body: str,
    now: int | None = None,
) -> Notification:
    """Append an unread notification for ``to_user_id``."""
    notification = Notification(
        id=new_id("notif"),
        to_user_id=to_user_id,
        type=kind,
        title=cut(title, 80) or "Notification",
        body=cut(body, 220),
        created_at=now if now is not None else now_ts(),
        read_at=None,
    )
    doc.notifications.append(notification)
    return notification


def collect_and_mark(
    doc: Document, user_id: str, limit: int = DEFAULT_BATCH, now: int | None = None
) -> list[Notification]:
    """Mark up to ``limit`` unread notifications of ``user_id`` as read.

    The newest are drained first. A notification returned here is never
    returned again.
    """
    now = now if now is not None else now_ts()
    batch: list[Notification] = []
    for notification in reversed(doc.notifications):
        if len(batch) >= limit:
            break
        if notification.to_user_id != user_id or notification.read_at is not None:
            continue
        notification.read_at = now
        batch.append(notification)
    return batch
