"""
Derived sort view over device records
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from fleetsync.schemas.device import DeviceState


class SortKey(str, Enum):
    NAME = "name"
    IP = "ip"
    VOLUME = "volume"
    BATTERY = "battery"
    RUNNING_APP = "running_app"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    """Active sort key and direction; both None means unsorted"""
    key: Optional[SortKey] = None
    direction: Optional[SortDirection] = None

    @property
    def is_active(self) -> bool:
        return self.key is not None and self.direction is not None

    def toggle(self, key: SortKey) -> "SortState":
        """Cycle ascending -> descending -> unsorted for ``key``

        Switching to another key always starts at ascending.
        """
        key = SortKey(key)
        if self.key != key or self.direction is None:
            return SortState(key, SortDirection.ASC)
        if self.direction == SortDirection.ASC:
            return SortState(key, SortDirection.DESC)
        return SortState()


def _ip_value(device: DeviceState) -> Any:
    raw = device.info.ip
    try:
        address = ipaddress.ip_address(raw)
        return (0, address.version, int(address))
    except ValueError:
        return (1, 0, raw.lower())


def _volume_value(device: DeviceState) -> Optional[int]:
    return device.volume.volume_percentage if device.volume is not None else None


def _battery_value(device: DeviceState) -> Optional[int]:
    return device.battery.headset_level if device.battery is not None else None


def _running_app_value(device: DeviceState) -> Optional[str]:
    return device.running_app.lower() if device.running_app else None


# Extractors return None for missing telemetry
_EXTRACTORS: Dict[SortKey, Callable[[DeviceState], Any]] = {
    SortKey.NAME: lambda device: device.info.display_name.lower(),
    SortKey.IP: _ip_value,
    SortKey.VOLUME: _volume_value,
    SortKey.BATTERY: _battery_value,
    SortKey.RUNNING_APP: _running_app_value,
}


def sort_devices(devices: Sequence[DeviceState], state: SortState) -> List[DeviceState]:
    """Stable sort; records without a value always go last"""
    if not state.is_active:
        return list(devices)

    extract = _EXTRACTORS[state.key]
    present = []
    missing = []
    for device in devices:
        value = extract(device)
        if value is None:
            missing.append(device)
        else:
            present.append((value, device))

    # sorted() keeps ties in input order in both directions
    present = sorted(
        present,
        key=lambda item: item[0],
        reverse=state.direction == SortDirection.DESC,
    )
    return [device for _, device in present] + missing
