"""Real-time notification broadcasting.

``NotificationBroadcaster`` is an in-process publish/subscribe hub: every
subscriber owns a bounded ``asyncio.Queue`` and ``publish`` pushes the
notification to all queues without waiting. Delivery is best effort; a
subscriber whose queue is full misses the notification.

One broadcaster is created at application start-up and handed explicitly to
the components that notify (see ``voting_guard.main``).
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional, Set

from fastapi import Request, WebSocket

from voting_guard.schemas.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

TITLES = {
    NotificationType.RULE_VIOLATION: "Rule violation",
    NotificationType.VOTER_BLOCKED: "Voter blocked",
    NotificationType.VOTER_UNBLOCKED: "Voter unblocked",
    NotificationType.INVALID_VOTER: "Invalid voter",
    NotificationType.VERIFICATION_APPROVED: "Verification approved",
    NotificationType.VERIFICATION_REJECTED: "Verification rejected",
    NotificationType.VERIFICATION_REVIEW: "Verification needs review",
    NotificationType.VOTE_SUBMITTED: "Vote submitted",
    NotificationType.CAMERA_UNAVAILABLE: "Camera unavailable",
}


def generate_notification_message(type: NotificationType, data: Dict[str, Any]) -> str:
    """Human-readable message for a notification type."""
    voter = data.get("voterName") or data.get("voterId") or "Unknown voter"

    if type == NotificationType.RULE_VIOLATION:
        return f"Rule violation detected for {voter}: {data.get('violation') or 'Unauthorized action'}"
    if type == NotificationType.VOTER_BLOCKED:
        return f"{voter} has been blocked from voting after {data.get('count', 0)} violations"
    if type == NotificationType.VOTER_UNBLOCKED:
        return f"{voter} can vote again"
    if type == NotificationType.INVALID_VOTER:
        return f"Invalid voter detected: {voter}"
    if type == NotificationType.VERIFICATION_APPROVED:
        return f"Identity verification approved for {voter}"
    if type == NotificationType.VERIFICATION_REJECTED:
        return f"Identity verification rejected for {voter}"
    if type == NotificationType.VERIFICATION_REVIEW:
        return f"Identity documents of {voter} require manual review ({data.get('similarity', 0)}% similarity)"
    if type == NotificationType.VOTE_SUBMITTED:
        return "Vote submitted successfully"
    if type == NotificationType.CAMERA_UNAVAILABLE:
        return f"Camera unavailable for {voter}"
    return data.get("message") or "New notification"


class NotificationBroadcaster:
    """Fan-out of notifications to every connected listener."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        """Register a new listener and return its queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Notification subscriber added ({len(self._subscribers)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.debug(f"Notification subscriber removed ({len(self._subscribers)} total)")

    def publish(
        self,
        type: NotificationType,
        data: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        message: Optional[str] = None
    ) -> Notification:
        """Build a notification and push it to all listeners without waiting.

        Returns:
            The notification that was broadcast.
        """
        data = dict(data or {})
        notification = Notification(
            type=type,
            title=title or TITLES.get(type, "Notification"),
            message=message or generate_notification_message(type, data),
            data=data,
        )

        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(notification)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Notification queue full, dropping {notification.id} for one listener")

        logger.info(f"Notification {type.value} broadcast to {delivered} listener(s)")
        return notification

    async def listen(self, queue: Optional[asyncio.Queue] = None) -> AsyncIterator[Notification]:
        """Yield notifications as they are published, until the consumer stops.

        Pass a queue obtained from ``subscribe()`` to receive what is
        published before the first iteration.
        """
        if queue is None:
            queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)


def get_broadcaster(request: Request) -> NotificationBroadcaster:
    """FastAPI dependency: broadcaster created in the application lifespan."""
    return request.app.state.broadcaster


def get_ws_broadcaster(websocket: WebSocket) -> NotificationBroadcaster:
    """Same as ``get_broadcaster`` for WebSocket routes."""
    return websocket.app.state.broadcaster
