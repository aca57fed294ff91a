"""
Error taxonomy for the fleet console core
"""

from typing import Iterable, Optional


class FleetSyncError(Exception):
    """Base class for all fleet console errors"""


class PreconditionError(FleetSyncError):
    """Rejected locally before any remote call (empty selection, bad input)"""


class RemoteCommandError(FleetSyncError):
    """An outbound call to the host agent rejected"""

    def __init__(self, command: str, message: str, device_ids: Optional[Iterable[str]] = None):
        self.command = command
        self.message = message
        self.device_ids = list(device_ids or [])
        super().__init__(message)


class ChannelInitError(FleetSyncError):
    """The upstream event subscription could not be established"""
