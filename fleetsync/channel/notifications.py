"""
Operator notifications

``notification_for`` is the pure mapping from inbound events to toasts;
``NotificationCenter`` collects notifications from every component.
"""

from collections import deque
from typing import Callable, List, Optional, Set

import structlog

from fleetsync.schemas.events import (
    AgentError,
    AgentEvent,
    AgentInfo,
    CommandExecuted,
    DeviceConnected,
    DeviceDisconnected,
)
from fleetsync.schemas.notification import Notification, NotificationLevel

logger = structlog.get_logger(__name__)

NotificationListener = Callable[[Notification], None]


def notification_for(event: AgentEvent) -> Optional[Notification]:
    """Map an event to the notification it raises, if any"""
    if isinstance(event, DeviceConnected):
        return Notification(
            level=NotificationLevel.SUCCESS,
            message=f"{event.device.info.model} connected",
        )
    if isinstance(event, DeviceDisconnected):
        return Notification(level=NotificationLevel.INFO, message="Device disconnected")
    if isinstance(event, CommandExecuted):
        if event.success:
            return Notification(
                level=NotificationLevel.SUCCESS,
                message=f"{event.command_type}: {event.message}",
            )
        return Notification(
            level=NotificationLevel.ERROR,
            message=f"{event.command_type} failed: {event.message}",
        )
    if isinstance(event, AgentError):
        return Notification(
            level=NotificationLevel.ERROR,
            message=event.message,
            description=event.context or None,
        )
    if isinstance(event, AgentInfo):
        return Notification(level=NotificationLevel.INFO, message=event.message)
    return None


class NotificationCenter:
    """Bounded history of notifications plus live listeners"""

    def __init__(self, history_limit: int = 100):
        self._history = deque(maxlen=max(1, history_limit))
        self._listeners: Set[NotificationListener] = set()

    def publish(self, notification: Notification) -> Notification:
        self._history.append(notification)
        log = logger.error if notification.level == NotificationLevel.ERROR else logger.info
        log(
            "Notification",
            severity=notification.level.value,
            message=notification.message,
            description=notification.description,
        )
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.error("Notification listener failed", error=str(e))
        return notification

    def push(
        self,
        level: NotificationLevel,
        message: str,
        description: Optional[str] = None,
    ) -> Notification:
        return self.publish(Notification(level=level, message=message, description=description))

    def success(self, message: str, description: Optional[str] = None) -> Notification:
        return self.push(NotificationLevel.SUCCESS, message, description)

    def info(self, message: str, description: Optional[str] = None) -> Notification:
        return self.push(NotificationLevel.INFO, message, description)

    def warning(self, message: str, description: Optional[str] = None) -> Notification:
        return self.push(NotificationLevel.WARNING, message, description)

    def error(self, message: str, description: Optional[str] = None) -> Notification:
        return self.push(NotificationLevel.ERROR, message, description)

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.add(listener)

        def remove() -> None:
            self._listeners.discard(listener)

        return remove

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        """Most recent notifications, newest last"""
        items = list(self._history)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)
