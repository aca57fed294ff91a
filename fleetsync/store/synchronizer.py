"""
Fleet synchronizer

Consumes events from the channel adapter through a bounded queue and applies
them to the device store one at a time. Full listing refreshes travel through
the same queue so they are ordered with live events.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set, Union

import structlog

from fleetsync.channel.adapter import EventChannelAdapter
from fleetsync.channel.notifications import NotificationCenter
from fleetsync.schemas.device import DeviceState
from fleetsync.schemas.events import (
    AgentEvent,
    BatteryUpdated,
    CommandExecuted,
    DeviceConnected,
    DeviceDisconnected,
    DeviceNameChanged,
    DeviceUpdated,
    InstalledAppsReceived,
    OperationProgressed,
    VolumeUpdated,
)
from fleetsync.store.device_store import DeviceStore
from fleetsync.store.progress import ProgressTracker

logger = structlog.get_logger(__name__)

DeviceLister = Callable[[], Awaitable[List[DeviceState]]]


@dataclass
class FleetSnapshot:
    """Result of a full listing call, queued like an event

    ``departed`` collects ids disconnected between the start of the listing
    call and the moment the snapshot is applied.
    """
    devices: List[DeviceState]
    departed: Set[str] = field(default_factory=set)


Message = Union[AgentEvent, FleetSnapshot]


class FleetSynchronizer:
    """Applies channel events and listing snapshots to the store"""

    def __init__(
        self,
        store: DeviceStore,
        tracker: ProgressTracker,
        adapter: EventChannelAdapter,
        list_devices: Optional[DeviceLister] = None,
        notifications: Optional[NotificationCenter] = None,
        queue_size: int = 1024,
    ):
        self.store = store
        self.tracker = tracker
        self.adapter = adapter
        self.list_devices = list_devices
        self.notifications = notifications
        self.queue: "asyncio.Queue[Message]" = asyncio.Queue(maxsize=max(1, queue_size))
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._consumer: Optional[asyncio.Task] = None
        self._pending_departures: List[Set[str]] = []
        self._handlers: Dict[type, Callable] = {
            DeviceConnected: self._on_connected,
            DeviceDisconnected: self._on_disconnected,
            DeviceUpdated: self._on_updated,
            DeviceNameChanged: self._on_name_changed,
            BatteryUpdated: self._on_battery,
            VolumeUpdated: self._on_volume,
            InstalledAppsReceived: self._on_installed_apps,
            CommandExecuted: self._on_command_executed,
            OperationProgressed: self._on_progress,
            FleetSnapshot: self._on_snapshot,
        }

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        """Subscribe to the adapter and start the consumer task"""
        if self._unsubscribe is None:
            self._unsubscribe = self.adapter.subscribe(self._enqueue)
        if not self.running:
            self._consumer = asyncio.create_task(self._consume())
        logger.info("Fleet synchronizer started", queue_size=self.queue.maxsize)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        self.tracker.cancel_all()
        logger.info("Fleet synchronizer stopped")

    async def _enqueue(self, event: AgentEvent) -> None:
        # Blocks the upstream reader while the queue is full
        await self.queue.put(event)

    async def refresh(self) -> bool:
        """Fetch the full device listing and queue it for application

        Returns:
            False if the listing call failed (table left untouched)
        """
        if self.list_devices is None:
            return False

        # The listing reflects the agent at request time. Field updates that
        # land while it is in flight can still be overwritten by older values,
        # but a disconnect seen in that window is never undone.
        departed: Set[str] = set()
        self._pending_departures.append(departed)
        try:
            devices = await self.list_devices()
        except Exception as e:
            self._pending_departures.remove(departed)
            logger.error("Failed to load devices", error=str(e))
            if self.notifications is not None:
                self.notifications.error("Failed to load devices", str(e))
            return False

        await self.queue.put(FleetSnapshot(devices=list(devices), departed=departed))
        return True

    async def drain(self) -> None:
        """Wait until every queued message has been applied"""
        await self.queue.join()

    async def _consume(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                self.apply(message)
            except Exception as e:
                logger.exception("Failed to apply event", message_type=type(message).__name__, error=str(e))
            finally:
                self.queue.task_done()

    def apply(self, message: Message) -> None:
        """Apply one message to the store"""
        handler = self._handlers.get(type(message))
        if handler is not None:
            handler(message)

    # ---------------- handlers ----------------

    def _on_connected(self, event: DeviceConnected) -> None:
        for departed in self._pending_departures:
            departed.discard(event.device_id)
        self.tracker.forget(event.device_id)
        self.store.upsert_full(event.device)
        logger.info("Device connected", device_id=event.device_id, model=event.device.info.model)

    def _on_disconnected(self, event: DeviceDisconnected) -> None:
        for departed in self._pending_departures:
            departed.add(event.device_id)
        self.tracker.forget(event.device_id)
        if self.store.remove(event.device_id):
            logger.info("Device disconnected", device_id=event.device_id)

    def _on_name_changed(self, event: DeviceNameChanged) -> None:
        self.store.update_field(event.device_id, {"custom_name": event.new_name})

    def _on_battery(self, event: BatteryUpdated) -> None:
        self.store.update_field(event.device_id, {"battery": event.battery()})

    def _on_volume(self, event: VolumeUpdated) -> None:
        self.store.update_field(event.device_id, {"volume": event.volume()})

    def _on_updated(self, event: DeviceUpdated) -> None:
        self.store.replace_existing(event.device)

    def _on_installed_apps(self, event: InstalledAppsReceived) -> None:
        self.store.update_field(event.device_id, {"installed_apps": event.apps})

    def _on_command_executed(self, event: CommandExecuted) -> None:
        self.store.update_field(event.device_id, {"history_append": event.result()})

    def _on_progress(self, event: OperationProgressed) -> None:
        self.tracker.apply(event.device_id, event.progress())

    def _on_snapshot(self, snapshot: FleetSnapshot) -> None:
        self._pending_departures = [d for d in self._pending_departures if d is not snapshot.departed]
        if snapshot.departed:
            logger.info("Skipping devices disconnected during refresh", device_ids=sorted(snapshot.departed))

        devices = [d for d in snapshot.devices if d.device_id not in snapshot.departed]
        for device in devices:
            self.tracker.forget(device.device_id)
        for device_id in self.store.replace_all(devices):
            self.tracker.forget(device_id)
