"""
Device state store

The canonical table of known devices, the selection set used to target
commands, and the active view filters. All mutations run on the event loop
thread, so no locking is done here.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

import structlog
from pydantic import ValidationError

from fleetsync.schemas.device import (
    BatteryInfo,
    CommandResult,
    DeviceState,
    OperationProgress,
    VolumeInfo,
)
from fleetsync.store.sorting import SortKey, SortState, sort_devices

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 20


class StatusFilter(str, Enum):
    ALL = "all"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def _model(schema: type) -> Callable[[Any], Any]:
    def coerce(value: Any) -> Any:
        if isinstance(value, schema):
            return value
        return schema.model_validate(value)
    return coerce


def _optional(coerce: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def wrapper(value: Any) -> Any:
        return None if value is None else coerce(value)
    return wrapper


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return value


def _text_list(value: Any) -> List[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise TypeError(f"expected a list of str, got {type(value).__name__}")
    return [_text(item) for item in value]


def _flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return value


def _timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise TypeError(f"expected datetime, got {type(value).__name__}")


# Patch key -> value coercion. Keys outside this table are ignored.
_PATCH_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "custom_name": _optional(_text),
    "battery": _optional(_model(BatteryInfo)),
    "volume": _optional(_model(VolumeInfo)),
    "running_app": _optional(_text),
    "installed_apps": _text_list,
    "history_append": _model(CommandResult),
    "operation_progress": _optional(_model(OperationProgress)),
    "last_seen": _timestamp,
    "is_connected": _flag,
}


class DeviceStore:
    """In-memory device table with selection and view state"""

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.history_limit = max(1, history_limit)
        self._devices: Dict[str, DeviceState] = {}
        self._selected: Set[str] = set()
        self.search_query = ""
        self.status_filter = StatusFilter.ALL
        self.sort_state = SortState()

    # ---------------- table ----------------

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def ids(self) -> List[str]:
        return list(self._devices)

    def get(self, device_id: str) -> Optional[DeviceState]:
        device = self._devices.get(device_id)
        return device.model_copy(deep=True) if device is not None else None

    def devices(self) -> List[DeviceState]:
        """All records in insertion order"""
        return [device.model_copy(deep=True) for device in self._devices.values()]

    def upsert_full(self, device: DeviceState) -> DeviceState:
        """Insert or wholly replace a record by id

        A replaced record keeps its position in the table.
        """
        record = device.model_copy(deep=True)
        self._trim_history(record)
        existed = record.device_id in self._devices
        self._devices[record.device_id] = record
        logger.debug("Device upserted", device_id=record.device_id, replaced=existed)
        return record.model_copy(deep=True)

    def replace_existing(self, device: DeviceState) -> Optional[DeviceState]:
        """Replace a known record wholesale; unknown ids are dropped

        Operation progress and the installed-app list are kept when the
        incoming record has none, since the agent's record never carries them.
        """
        current = self._devices.get(device.device_id)
        if current is None:
            logger.debug("Update for unknown device dropped", device_id=device.device_id)
            return None

        record = device.model_copy(deep=True)
        if record.operation_progress is None:
            record.operation_progress = current.operation_progress
        if not record.installed_apps:
            record.installed_apps = current.installed_apps
        self._trim_history(record)
        self._devices[record.device_id] = record
        return record.model_copy(deep=True)

    def update_field(self, device_id: str, patch: Mapping[str, Any]) -> Optional[DeviceState]:
        """Merge a partial update into an existing record

        Unknown ids are ignored; records are never created from a partial
        update. Fields that are unknown or fail to coerce are skipped.

        Returns:
            The updated record, or None if the id is unknown
        """
        current = self._devices.get(device_id)
        if current is None:
            logger.debug("Partial update for unknown device dropped", device_id=device_id)
            return None

        record = current.model_copy(deep=True)
        for key, value in patch.items():
            coerce = _PATCH_FIELDS.get(key)
            if coerce is None:
                continue
            try:
                coerced = coerce(value)
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning("Ignoring malformed field in update",
                               device_id=device_id, field=key, error=str(e))
                continue
            self._apply(record, key, coerced)

        self._devices[device_id] = record
        return record.model_copy(deep=True)

    def _apply(self, record: DeviceState, key: str, value: Any) -> None:
        if key == "custom_name":
            record.info.custom_name = value
        elif key == "last_seen":
            record.info.last_seen = value
        elif key == "history_append":
            record.command_history.append(value)
            self._trim_history(record)
        else:
            setattr(record, key, value)

    def _trim_history(self, record: DeviceState) -> None:
        overflow = len(record.command_history) - self.history_limit
        if overflow > 0:
            del record.command_history[:overflow]

    def remove(self, device_id: str) -> bool:
        """Delete a record and prune it from the selection"""
        self._selected.discard(device_id)
        removed = self._devices.pop(device_id, None)
        if removed is not None:
            logger.debug("Device removed", device_id=device_id)
        return removed is not None

    def replace_all(self, devices: Iterable[DeviceState]) -> List[str]:
        """Apply a full listing: upsert every listed device, drop the rest

        Returns:
            Ids removed because the listing no longer contains them
        """
        listed = []
        for device in devices:
            self.upsert_full(device)
            listed.append(device.device_id)

        keep = set(listed)
        stale = [device_id for device_id in self._devices if device_id not in keep]
        for device_id in stale:
            self.remove(device_id)

        logger.info("Device table refreshed", listed=len(listed), removed=len(stale))
        return stale

    # ---------------- selection ----------------

    def select(self, device_id: str) -> bool:
        if device_id not in self._devices:
            return False
        self._selected.add(device_id)
        return True

    def deselect(self, device_id: str) -> bool:
        if device_id in self._selected:
            self._selected.discard(device_id)
            return True
        return False

    def toggle(self, device_id: str) -> bool:
        """Flip selection of one device; returns whether it is now selected"""
        if device_id in self._selected:
            self._selected.discard(device_id)
            return False
        return self.select(device_id)

    def select_all(self) -> List[str]:
        """Select exactly the devices passing the active filters"""
        self._selected = {device.device_id for device in self._filter(self.search_query, self.status_filter)}
        return self.selected_ids()

    def clear_selection(self) -> None:
        self._selected = set()

    def is_selected(self, device_id: str) -> bool:
        return device_id in self._selected

    def selected_ids(self) -> List[str]:
        """Selected ids in table order"""
        return [device_id for device_id in self._devices if device_id in self._selected]

    def selected_devices(self) -> List[DeviceState]:
        return [self._devices[device_id].model_copy(deep=True) for device_id in self.selected_ids()]

    # ---------------- view ----------------

    def set_search_query(self, query: str) -> None:
        self.search_query = query or ""

    def set_status_filter(self, status: StatusFilter) -> None:
        self.status_filter = StatusFilter(status)

    def toggle_sort(self, key: SortKey) -> SortState:
        self.sort_state = self.sort_state.toggle(key)
        return self.sort_state

    def filtered_view(
        self,
        query: Optional[str] = None,
        status: Optional[StatusFilter] = None,
    ) -> List[DeviceState]:
        """Records matching the query and connectivity status

        Omitted arguments fall back to the active view filters. Never
        mutates the table.
        """
        if query is None:
            query = self.search_query
        status = self.status_filter if status is None else StatusFilter(status)
        return [device.model_copy(deep=True) for device in self._filter(query, status)]

    def visible_devices(
        self,
        query: Optional[str] = None,
        status: Optional[StatusFilter] = None,
        sort: Optional[SortState] = None,
    ) -> List[DeviceState]:
        """Filtered view ordered by the given or active sort"""
        return sort_devices(self.filtered_view(query, status), sort or self.sort_state)

    def _filter(self, query: str, status: StatusFilter) -> List[DeviceState]:
        needle = (query or "").strip().lower()
        return [
            device for device in self._devices.values()
            if _matches_query(device, needle) and _matches_status(device, status)
        ]


def _matches_query(device: DeviceState, needle: str) -> bool:
    if not needle:
        return True
    info = device.info
    return (
        needle in info.model.lower()
        or needle in info.serial.lower()
        or (info.custom_name is not None and needle in info.custom_name.lower())
    )


def _matches_status(device: DeviceState, status: StatusFilter) -> bool:
    if status == StatusFilter.CONNECTED:
        return device.is_connected
    if status == StatusFilter.DISCONNECTED:
        return not device.is_connected
    return True
