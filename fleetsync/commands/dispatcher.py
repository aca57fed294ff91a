"""
Command dispatcher

Validates a selection, runs one remote call against it and turns the result
into a single aggregated outcome and notification.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional

import structlog

from fleetsync.channel.notifications import NotificationCenter

logger = structlog.get_logger(__name__)

RemoteCall = Callable[[List[str]], Awaitable[Any]]

NO_SELECTION_MESSAGE = "Please select at least one device"


class DispatchStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NO_SELECTION = "no_selection"
    BUSY = "busy"
    INVALID_INPUT = "invalid_input"


@dataclass
class DispatchOutcome:
    """Aggregated result of one dispatch"""
    status: DispatchStatus
    label: str
    device_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == DispatchStatus.SUCCEEDED


class CommandDispatcher:
    """Runs one command at a time against a set of devices

    A batch is all-or-nothing: if the remote call rejects, the whole batch is
    reported as failed, even when only some devices were affected.
    """

    def __init__(self, notifications: NotificationCenter):
        self.notifications = notifications
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    async def dispatch(
        self,
        selected_ids: Iterable[str],
        remote_call: RemoteCall,
        label: str,
        notify_on_success: bool = True,
    ) -> DispatchOutcome:
        ids = list(selected_ids)
        if not ids:
            self.notifications.warning(NO_SELECTION_MESSAGE)
            return DispatchOutcome(DispatchStatus.NO_SELECTION, label)

        if self._busy:
            logger.info("Dispatch rejected while another command is in flight", command=label)
            return DispatchOutcome(DispatchStatus.BUSY, label, len(ids))

        self._busy = True
        try:
            await remote_call(ids)
        except Exception as e:
            logger.error("Command failed", command=label, device_count=len(ids), error=str(e))
            self.notifications.error(f"{label} failed: {e}")
            return DispatchOutcome(DispatchStatus.FAILED, label, len(ids), str(e))
        finally:
            self._busy = False

        logger.info("Command sent", command=label, device_count=len(ids))
        if notify_on_success:
            self.notifications.success(f"{label} sent to {len(ids)} device(s)")
        return DispatchOutcome(DispatchStatus.SUCCEEDED, label, len(ids))
