"""
Fleet commands

One method per agent command. Each validates its input, targets the given
ids (or the current selection) and goes through the dispatcher.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from fleetsync.commands.client import AgentCommandClient
from fleetsync.commands.dispatcher import CommandDispatcher, DispatchOutcome, DispatchStatus
from fleetsync.core.exceptions import PreconditionError
from fleetsync.store.device_store import DeviceStore

logger = structlog.get_logger(__name__)


def _require_text(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise PreconditionError(f"Please enter a {what}")
    return value.strip()


def _require_level(value: Any) -> int:
    if isinstance(value, bool):
        raise PreconditionError("Volume must be 0-100")
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise PreconditionError("Volume must be 0-100")
    if isinstance(value, float) and value != level:
        raise PreconditionError("Volume must be 0-100")
    if not 0 <= level <= 100:
        raise PreconditionError("Volume must be 0-100")
    return level


class FleetCommands:
    """Labelled, validated entry points for every agent command"""

    def __init__(self, client: AgentCommandClient, dispatcher: CommandDispatcher, store: DeviceStore):
        self.client = client
        self.dispatcher = dispatcher
        self.store = store

    def _targets(self, device_ids: Optional[Iterable[str]]) -> List[str]:
        if device_ids is None:
            return self.store.selected_ids()
        return list(device_ids)

    def _invalid(self, label: str, error: PreconditionError) -> DispatchOutcome:
        self.dispatcher.notifications.warning(str(error))
        logger.info("Command input rejected", command=label, error=str(error))
        return DispatchOutcome(DispatchStatus.INVALID_INPUT, label, error=str(error))

    async def restart(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(self._targets(device_ids), self.client.restart, "Restart")

    async def request_battery(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(
            self._targets(device_ids), self.client.request_battery, "Get Battery"
        )

    async def get_volume(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(self._targets(device_ids), self.client.get_volume, "Get Volume")

    async def set_volume(self, level: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        try:
            level = _require_level(level)
        except PreconditionError as e:
            return self._invalid("Set Volume", e)

        async def call(ids: List[str]) -> None:
            await self.client.set_volume(ids, level)

        return await self.dispatcher.dispatch(self._targets(device_ids), call, "Set Volume")

    async def ping(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(
            self._targets(device_ids), self.client.ping, "Ping", notify_on_success=False
        )

    async def launch_app(self, package_name: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Launch App", "package name", package_name, self.client.launch_app, device_ids
        )

    async def uninstall_app(self, package_name: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Uninstall App", "package name", package_name, self.client.uninstall_app, device_ids
        )

    async def install_local(self, filename: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Install Local APK", "file name", filename, self.client.install_local, device_ids
        )

    async def install_remote(self, url: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Install Remote APK", "URL", url, self.client.install_remote, device_ids
        )

    async def execute_shell(self, command: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Shell Command", "command", command, self.client.execute_shell, device_ids
        )

    async def close_all_apps(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(
            self._targets(device_ids), self.client.close_all_apps, "Close All Apps"
        )

    async def display_message(self, text: Any, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self._with_text(
            "Display Message", "message", text, self.client.display_message, device_ids
        )

    async def get_installed_apps(self, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        return await self.dispatcher.dispatch(
            self._targets(device_ids), self.client.get_installed_apps, "Get Apps"
        )

    async def rename(self, device_id: str, name: Optional[str]) -> DispatchOutcome:
        """Set or clear (blank / None) the display name of one device"""
        device = self.store.get(device_id)
        if device is None:
            return self._invalid("Rename", PreconditionError(f"Unknown device {device_id}"))

        new_name = name.strip() if isinstance(name, str) and name.strip() else None
        serial = device.info.serial

        async def call(ids: List[str]) -> None:
            await self.client.set_display_name(serial, new_name)

        return await self.dispatcher.dispatch([device_id], call, "Rename")

    async def _with_text(
        self,
        label: str,
        what: str,
        value: Any,
        method: Callable,
        device_ids: Optional[Iterable[str]],
    ) -> DispatchOutcome:
        try:
            text = _require_text(value, what)
        except PreconditionError as e:
            return self._invalid(label, e)

        async def call(ids: List[str]) -> None:
            await method(ids, text)

        return await self.dispatcher.dispatch(self._targets(device_ids), call, label)

    async def run(self, name: str, value: Any = None, device_ids: Optional[Iterable[str]] = None) -> DispatchOutcome:
        """Dispatch a command by its wire name

        Raises:
            KeyError: If ``name`` is not a known command
        """
        spec = COMMANDS[name]
        method = getattr(self, spec["method"])
        if spec["takes_value"]:
            return await method(value, device_ids=device_ids)
        return await method(device_ids=device_ids)


# Wire name -> FleetCommands method
COMMANDS: Dict[str, Dict[str, Any]] = {
    "restart": {"method": "restart", "takes_value": False},
    "request_battery": {"method": "request_battery", "takes_value": False},
    "get_volume": {"method": "get_volume", "takes_value": False},
    "set_volume": {"method": "set_volume", "takes_value": True},
    "ping": {"method": "ping", "takes_value": False},
    "launch_app": {"method": "launch_app", "takes_value": True},
    "uninstall_app": {"method": "uninstall_app", "takes_value": True},
    "install_local": {"method": "install_local", "takes_value": True},
    "install_remote": {"method": "install_remote", "takes_value": True},
    "execute_shell": {"method": "execute_shell", "takes_value": True},
    "close_all_apps": {"method": "close_all_apps", "takes_value": False},
    "display_message": {"method": "display_message", "takes_value": True},
    "get_installed_apps": {"method": "get_installed_apps", "takes_value": False},
}
