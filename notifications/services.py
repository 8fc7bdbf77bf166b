# notifications/services.py
"""
Notification sink.

Engine operations call `notify()` from inside their transaction; the row is
written only after that transaction commits, so a rolled-back operation never
leaves a stray notification behind. Delivery failures are logged and dropped:
they never block or undo the operation that triggered them.
"""
import logging

from django.db import transaction

from .models import Notification

logger = logging.getLogger("crew.notifications")


def _deliver(user_id, message, context):
    try:
        Notification.objects.create(
            user_id=user_id,
            title=context.get("title") or "Notification",
            message=message,
            type=context.get("type", Notification.TYPE_INFO),
            related_event_id=context.get("event_id"),
            related_team_id=context.get("team_id"),
            related_user_id=context.get("related_user_id"),
        )
    except Exception as e:
        logger.warning(f"Failed to deliver notification to user {user_id}: {e}")


def notify(user_id, message, context=None):
    """
    Queue a notification for `user_id`.

    `context` may carry: title, type, event_id, team_id, related_user_id.
    Outside a transaction the notification is written immediately.
    """
    context = dict(context or {})
    transaction.on_commit(lambda: _deliver(user_id, message, context))
