"""
Event channel adapter

Holds exactly one upstream subscription to the host agent's event stream and
re-publishes each event to in-process subscribers.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Set, Union

import structlog

from fleetsync.channel.notifications import NotificationCenter, notification_for
from fleetsync.core.exceptions import ChannelInitError
from fleetsync.schemas.events import AgentEvent

logger = structlog.get_logger(__name__)

EventCallback = Callable[[AgentEvent], Union[None, Awaitable[None]]]
EventHandler = Callable[[AgentEvent], Awaitable[None]]
Unlisten = Callable[[], Union[None, Awaitable[None]]]


class EventSource(Protocol):
    """Transport primitive delivering raw agent events"""

    async def listen(self, handler: EventHandler) -> Unlisten:
        ...


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class EventChannelAdapter:
    """Fan-out of one upstream event stream to many subscribers"""

    def __init__(self, source: EventSource, notifications: Optional[NotificationCenter] = None):
        self._source = source
        self._notifications = notifications
        self._unlisten: Optional[Unlisten] = None
        self._callbacks: Set[EventCallback] = set()
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._unlisten is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    async def initialize(self) -> None:
        """Open the upstream subscription

        Raises:
            ChannelInitError: If the upstream subscription cannot be established
        """
        # Overlapping callers wait here and then see the open subscription
        async with self._init_lock:
            if self._unlisten is not None:
                logger.warning("Event channel already initialized")
                return

            try:
                self._unlisten = await self._source.listen(self.handle_event)
            except Exception as e:
                logger.error("Failed to subscribe to agent events", error=str(e))
                raise ChannelInitError(f"Failed to subscribe to agent events: {e}") from e

        logger.info("Event channel initialized")

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register a subscriber; returns the handle that removes it"""
        self._callbacks.add(callback)

        def unsubscribe() -> None:
            self._callbacks.discard(callback)

        return unsubscribe

    async def handle_event(self, event: AgentEvent) -> None:
        """Deliver one upstream event to every subscriber"""
        self._notify(event)

        for callback in list(self._callbacks):
            try:
                await _maybe_await(callback(event))
            except Exception as e:
                logger.exception("Event subscriber failed", event_type=event.type, error=str(e))

    def _notify(self, event: AgentEvent) -> None:
        if self._notifications is None:
            return
        try:
            notification = notification_for(event)
            if notification is not None:
                self._notifications.publish(notification)
        except Exception as e:
            logger.error("Failed to raise notification", event_type=event.type, error=str(e))

    async def destroy(self) -> None:
        """Release the upstream subscription and drop all subscribers"""
        unlisten, self._unlisten = self._unlisten, None
        self._callbacks.clear()
        if unlisten is not None:
            await _maybe_await(unlisten())
            logger.info("Event channel destroyed")
