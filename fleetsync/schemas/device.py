"""
Device record schemas

Payloads from the host agent are camelCase; attributes are snake_case and
either form is accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentModel(BaseModel):
    """Base schema for everything exchanged with the host agent"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceInfo(AgentModel):
    """Descriptive attributes of a device"""
    id: str = Field(..., min_length=1, description="Stable opaque device identifier")
    model: str = Field("", description="Device model name")
    serial: str = Field("", description="Serial number")
    ip: str = Field("", description="Network address")
    custom_name: Optional[str] = Field(None, description="User-assigned display name")
    connected_at: datetime = Field(default_factory=utcnow, description="First seen")
    last_seen: datetime = Field(default_factory=utcnow, description="Last seen")

    @property
    def display_name(self) -> str:
        return self.custom_name or self.model


class BatteryInfo(AgentModel):
    headset_level: int = Field(..., ge=0, le=100, description="Battery level in percent")
    is_charging: bool = False


class VolumeInfo(AgentModel):
    current_volume: int = Field(..., ge=0)
    max_volume: int = Field(..., ge=0)

    @computed_field
    @property
    def volume_percentage(self) -> int:
        if self.max_volume <= 0:
            return 0
        return max(0, min(100, round(self.current_volume * 100 / self.max_volume)))


class CommandResult(AgentModel):
    """Outcome of one command on one device"""
    command_type: str
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class OperationType(str, Enum):
    DOWNLOAD = "download"
    INSTALL = "install"


class OperationStage(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"
    FAILED = "failed"


class OperationPhase(str, Enum):
    NONE = "none"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    COMPLETED = "completed"
    FAILED = "failed"


# Ordering used to reject progress that would move an operation backwards
PHASE_RANK = {
    OperationPhase.NONE: 0,
    OperationPhase.DOWNLOADING: 1,
    OperationPhase.INSTALLING: 2,
    OperationPhase.COMPLETED: 3,
    OperationPhase.FAILED: 3,
}


class OperationProgress(AgentModel):
    """Progress of one long-running operation (download / install) on a device"""
    operation_id: str = Field(..., min_length=1)
    operation_type: OperationType
    stage: OperationStage
    percentage: float = 0.0

    @field_validator("percentage")
    @classmethod
    def clamp_percentage(cls, value: float) -> float:
        return max(0.0, min(100.0, value))

    @property
    def phase(self) -> OperationPhase:
        if self.stage == OperationStage.COMPLETED:
            return OperationPhase.COMPLETED
        if self.stage == OperationStage.FAILED:
            return OperationPhase.FAILED
        if self.operation_type == OperationType.DOWNLOAD:
            return OperationPhase.DOWNLOADING
        return OperationPhase.INSTALLING

    @property
    def is_terminal(self) -> bool:
        return self.stage in (OperationStage.COMPLETED, OperationStage.FAILED)


class DeviceState(AgentModel):
    """Canonical record for one physical device"""
    info: DeviceInfo
    battery: Optional[BatteryInfo] = None
    volume: Optional[VolumeInfo] = None
    running_app: Optional[str] = None
    installed_apps: List[str] = Field(default_factory=list)
    command_history: List[CommandResult] = Field(default_factory=list)
    operation_progress: Optional[OperationProgress] = None
    is_connected: bool = True

    @model_validator(mode="before")
    @classmethod
    def lift_running_app(cls, data: Any) -> Any:
        """The agent reports the foreground app as ``info.runningApp``"""
        if not isinstance(data, dict) or "running_app" in data or "runningApp" in data:
            return data
        info = data.get("info")
        if isinstance(info, dict):
            for key in ("runningApp", "running_app"):
                if key in info:
                    return {**data, "running_app": info[key]}
        return data

    @property
    def device_id(self) -> str:
        return self.info.id
