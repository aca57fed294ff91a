# Schemas package
from .device import (
    BatteryInfo,
    CommandResult,
    DeviceInfo,
    DeviceState,
    OperationPhase,
    OperationProgress,
    OperationStage,
    OperationType,
    VolumeInfo,
)
from .events import AgentEvent, parse_event
from .notification import Notification, NotificationLevel

__all__ = [
    'BatteryInfo', 'CommandResult', 'DeviceInfo', 'DeviceState', 'OperationPhase',
    'OperationProgress', 'OperationStage', 'OperationType', 'VolumeInfo',
    'AgentEvent', 'parse_event', 'Notification', 'NotificationLevel',
]
