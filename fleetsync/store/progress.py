"""
Operation progress tracker

Advances the per-device operation progress embedded in each device record
and clears terminal progress after a delay. Timers go through a
``Scheduler`` so the clear can be driven deterministically in tests.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Protocol

import structlog

from fleetsync.schemas.device import PHASE_RANK, OperationPhase, OperationProgress
from fleetsync.store.device_store import DeviceStore

logger = structlog.get_logger(__name__)

DEFAULT_CLEAR_DELAY = 2.0  # seconds


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable:
        ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback, *args)


class ProgressTracker:
    """State machine per device: none -> downloading -> installing -> completed | failed"""

    def __init__(
        self,
        store: DeviceStore,
        scheduler: Optional[Scheduler] = None,
        clear_delay: float = DEFAULT_CLEAR_DELAY,
    ):
        self.store = store
        self.scheduler = scheduler or LoopScheduler()
        self.clear_delay = clear_delay
        self._timers: Dict[str, Cancellable] = {}

    def apply(self, device_id: str, progress: OperationProgress) -> Optional[OperationProgress]:
        """Advance the progress of one device

        A new operation id replaces whatever was stored. For the same
        operation id the phase never moves backwards and the percentage
        never decreases.

        Returns:
            The progress now stored, or None if the device is unknown
        """
        device = self.store.get(device_id)
        if device is None:
            logger.debug("Progress for unknown device dropped",
                         device_id=device_id, operation_id=progress.operation_id)
            return None

        current = device.operation_progress
        if current is not None and current.operation_id == progress.operation_id:
            if current.is_terminal or PHASE_RANK[progress.phase] < PHASE_RANK[current.phase]:
                logger.debug("Stale progress ignored", device_id=device_id,
                             operation_id=progress.operation_id, stage=progress.stage.value)
                return current
            if progress.percentage < current.percentage:
                progress = progress.model_copy(update={"percentage": current.percentage})
        else:
            # New operation supersedes the previous one and its pending clear
            self._cancel_timer(device_id)
            if current is not None:
                logger.info("Operation superseded", device_id=device_id,
                            previous=current.operation_id, operation_id=progress.operation_id)

        self.store.update_field(device_id, {"operation_progress": progress})

        if progress.is_terminal:
            self._schedule_clear(device_id, progress.operation_id)
            logger.info("Operation finished", device_id=device_id,
                        operation_id=progress.operation_id, phase=progress.phase.value)
        return progress

    def progress_for(self, device_id: str) -> Optional[OperationProgress]:
        device = self.store.get(device_id)
        return device.operation_progress if device is not None else None

    def phase_for(self, device_id: str) -> OperationPhase:
        progress = self.progress_for(device_id)
        return progress.phase if progress is not None else OperationPhase.NONE

    def has_pending_clear(self, device_id: str) -> bool:
        return device_id in self._timers

    def forget(self, device_id: str) -> None:
        """Drop any pending clear for a device (record replaced or removed)"""
        self._cancel_timer(device_id)

    def cancel_all(self) -> None:
        for device_id in list(self._timers):
            self._cancel_timer(device_id)

    def _schedule_clear(self, device_id: str, operation_id: str) -> None:
        self._cancel_timer(device_id)
        self._timers[device_id] = self.scheduler.call_later(
            self.clear_delay, self._clear, device_id, operation_id
        )

    def _cancel_timer(self, device_id: str) -> None:
        timer = self._timers.pop(device_id, None)
        if timer is not None:
            timer.cancel()

    def _clear(self, device_id: str, operation_id: str) -> None:
        current = self.progress_for(device_id)
        # A newer operation may have started since this timer was armed
        if current is None or current.operation_id != operation_id:
            return
        self._timers.pop(device_id, None)
        self.store.update_field(device_id, {"operation_progress": None})
        logger.debug("Operation progress cleared", device_id=device_id, operation_id=operation_id)
