import json
import logging
import uuid
from typing import Any, Protocol

import redis

from tracer.config import settings
from tracer.models.base import now_utc
from tracer.redis_client import redis_client

logger = logging.getLogger(__name__)

MEMBER_ADDED = "project.member_added"
OWNERSHIP_TRANSFERRED = "project.ownership_transferred"
TASK_ASSIGNED = "task.assigned"

class Notifier(Protocol):
    def notify(self, event: str, **payload: Any) -> None: ...

class RedisNotifier:
    def __init__(self, client: redis.Redis, channel: str, enabled: bool = True):
        self.client = client
        self.channel = channel
        self.enabled = enabled

    def notify(self, event: str, **payload: Any) -> None:
        if not self.enabled:
            return

        message = json.dumps(
            {
                "id": uuid.uuid4().hex,
                "event": event,
                "occurred_at": now_utc().isoformat(),
                "payload": payload,
            },
            default=str,
        )
        try:
            self.client.publish(self.channel, message)
        except redis.RedisError:
            # delivery is best-effort; the state change already committed
            logger.warning("notification publish failed", exc_info=True, extra={"fields": {"event": event}})

_notifier = RedisNotifier(redis_client, settings.notifications_channel, settings.notifications_enabled)

def get_notifier() -> Notifier:
    return _notifier

def safe_notify(notifier: Notifier | None, event: str, **payload: Any) -> None:
    if notifier is None:
        return
    try:
        notifier.notify(event, **payload)
    except Exception:
        # never let a notification undo or block a committed change
        logger.exception("notifier raised", extra={"fields": {"event": event}})
