"""
Console API request / response schemas
"""

from typing import Any, List, Optional

from pydantic import Field

from fleetsync.commands.dispatcher import DispatchStatus
from fleetsync.schemas.device import AgentModel, DeviceState
from fleetsync.schemas.notification import Notification
from fleetsync.store.device_store import StatusFilter
from fleetsync.store.sorting import SortDirection, SortKey


class ViewState(AgentModel):
    """Active filters and sort of the device list"""
    query: str = ""
    status: StatusFilter = StatusFilter.ALL
    sort_key: Optional[SortKey] = None
    sort_direction: Optional[SortDirection] = None


class ViewUpdate(AgentModel):
    query: Optional[str] = Field(None, description="Search text over model / serial / name")
    status: Optional[StatusFilter] = Field(None, description="Connectivity filter")


class DeviceListResponse(AgentModel):
    devices: List[DeviceState]
    total: int
    selected_ids: List[str]
    view: ViewState


class SelectionResponse(AgentModel):
    selected_ids: List[str]
    count: int


class CommandRequest(AgentModel):
    device_ids: Optional[List[str]] = Field(None, description="Targets; defaults to the current selection")
    value: Any = Field(None, description="Command argument (level, package, url, ...)")


class RenameRequest(AgentModel):
    name: Optional[str] = Field(None, description="New display name; empty clears it")


class DispatchResponse(AgentModel):
    status: DispatchStatus
    label: str
    device_count: int
    error: Optional[str] = None


class NotificationListResponse(AgentModel):
    notifications: List[Notification]
    total: int
