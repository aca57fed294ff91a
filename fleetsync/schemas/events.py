"""
Inbound event schemas

Every message on the event channel is a JSON object tagged by ``type``.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from fleetsync.schemas.device import (
    AgentModel,
    BatteryInfo,
    CommandResult,
    DeviceState,
    OperationProgress,
    OperationStage,
    OperationType,
    VolumeInfo,
    utcnow,
)


class DeviceConnected(AgentModel):
    type: Literal["deviceConnected"] = "deviceConnected"
    device: DeviceState

    @property
    def device_id(self) -> str:
        return self.device.info.id


class DeviceDisconnected(AgentModel):
    type: Literal["deviceDisconnected"] = "deviceDisconnected"
    device_id: str
    serial: Optional[str] = None


class DeviceNameChanged(AgentModel):
    type: Literal["deviceNameChanged"] = "deviceNameChanged"
    device_id: str
    serial: Optional[str] = None
    new_name: Optional[str] = None


class BatteryUpdated(AgentModel):
    type: Literal["batteryUpdated"] = "batteryUpdated"
    device_id: str
    level: int = Field(..., ge=0, le=100)
    is_charging: bool = False

    def battery(self) -> BatteryInfo:
        return BatteryInfo(headset_level=self.level, is_charging=self.is_charging)


class VolumeUpdated(AgentModel):
    type: Literal["volumeUpdated"] = "volumeUpdated"
    device_id: str
    current_volume: int = Field(..., ge=0)
    max_volume: int = Field(..., ge=0)

    def volume(self) -> VolumeInfo:
        return VolumeInfo(current_volume=self.current_volume, max_volume=self.max_volume)


class DeviceUpdated(AgentModel):
    """Full record for a device the agent already announced"""
    type: Literal["deviceUpdated"] = "deviceUpdated"
    device: DeviceState

    @property
    def device_id(self) -> str:
        return self.device.info.id


class OperationProgressed(AgentModel):
    type: Literal["operationProgress"] = "operationProgress"
    device_id: str
    device_name: Optional[str] = None
    operation_id: str
    operation_type: OperationType
    stage: OperationStage
    percentage: float = 0.0

    def progress(self) -> OperationProgress:
        return OperationProgress(
            operation_id=self.operation_id,
            operation_type=self.operation_type,
            stage=self.stage,
            percentage=self.percentage,
        )


class CommandExecuted(AgentModel):
    type: Literal["commandExecuted"] = "commandExecuted"
    device_id: str
    command_type: str
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=utcnow)

    def result(self) -> CommandResult:
        return CommandResult(
            command_type=self.command_type,
            success=self.success,
            message=self.message,
            timestamp=self.timestamp,
        )


class InstalledAppsReceived(AgentModel):
    type: Literal["installedAppsReceived"] = "installedAppsReceived"
    device_id: str
    apps: List[str] = Field(default_factory=list)


class AgentError(AgentModel):
    type: Literal["error"] = "error"
    message: str
    context: Optional[str] = None


class AgentInfo(AgentModel):
    type: Literal["info"] = "info"
    message: str


AgentEvent = Annotated[
    Union[
        DeviceConnected,
        DeviceDisconnected,
        DeviceUpdated,
        DeviceNameChanged,
        BatteryUpdated,
        VolumeUpdated,
        OperationProgressed,
        CommandExecuted,
        InstalledAppsReceived,
        AgentError,
        AgentInfo,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(AgentEvent)


def parse_event(payload: Union[str, bytes, dict, Any]) -> AgentEvent:
    """Parse one raw message into a typed event

    Raises:
        pydantic.ValidationError: unknown ``type`` or malformed fields
    """
    if isinstance(payload, (str, bytes)):
        return _event_adapter.validate_json(payload)
    return _event_adapter.validate_python(payload)
