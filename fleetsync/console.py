"""
Fleet console session

Explicitly constructed container holding one session's worth of state: the
notification center, device store, progress tracker, event channel and
command layer. Nothing here is a module-level singleton.
"""

from typing import Optional

import structlog

from fleetsync.channel.adapter import EventChannelAdapter, EventSource
from fleetsync.channel.notifications import NotificationCenter
from fleetsync.channel.transport import AgentEventStream
from fleetsync.commands.actions import FleetCommands
from fleetsync.commands.client import AgentCommandClient
from fleetsync.commands.dispatcher import CommandDispatcher
from fleetsync.core.config import Settings
from fleetsync.store.device_store import DeviceStore
from fleetsync.store.progress import ProgressTracker, Scheduler
from fleetsync.store.synchronizer import FleetSynchronizer

logger = structlog.get_logger(__name__)


class FleetConsole:
    """Wires the channel, store, tracker and command layer for one session"""

    def __init__(
        self,
        settings: Settings,
        source: Optional[EventSource] = None,
        client: Optional[AgentCommandClient] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.settings = settings
        self.notifications = NotificationCenter(settings.notification_history_limit)
        self.store = DeviceStore(history_limit=settings.command_history_limit)
        self.tracker = ProgressTracker(self.store, scheduler, settings.progress_clear_delay)

        if source is None:
            source = AgentEventStream(
                settings.agent_events_url,
                reconnect_delay=settings.event_reconnect_delay,
            )
        self.source = source
        self.adapter = EventChannelAdapter(source, self.notifications)

        self.client = client or AgentCommandClient(
            settings.agent_base_url, timeout=settings.agent_request_timeout
        )
        self.synchronizer = FleetSynchronizer(
            self.store,
            self.tracker,
            self.adapter,
            list_devices=self.client.list_devices,
            notifications=self.notifications,
            queue_size=settings.event_queue_size,
        )
        self.dispatcher = CommandDispatcher(self.notifications)
        self.commands = FleetCommands(self.client, self.dispatcher, self.store)

        # Events missed while the stream was down are only recoverable by a full listing
        if isinstance(source, AgentEventStream) and source.on_reconnect is None:
            source.on_reconnect = self.synchronizer.refresh

    async def start(self) -> None:
        """Subscribe, open the event channel and load the initial listing

        Raises:
            ChannelInitError: If the event channel cannot be opened
        """
        self.synchronizer.start()
        try:
            await self.adapter.initialize()
        except Exception:
            await self.synchronizer.stop()
            raise
        await self.synchronizer.refresh()
        logger.info("Fleet console started")

    async def stop(self) -> None:
        await self.synchronizer.stop()
        await self.adapter.destroy()
        await self.client.close()
        logger.info("Fleet console stopped")
