"""
Host agent command client

Thin aiohttp wrapper around the agent's command endpoints. Each command
targets one or more devices and resolves or rejects as a unit.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog
from pydantic import TypeAdapter, ValidationError

from fleetsync.core.exceptions import RemoteCommandError
from fleetsync.schemas.device import DeviceState

logger = structlog.get_logger(__name__)

_device_list = TypeAdapter(List[DeviceState])


class AgentCommandClient:
    """Outbound command surface of the host agent"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AgentCommandClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def _request(
        self,
        method: str,
        path: str,
        command: str,
        payload: Optional[Dict[str, Any]] = None,
        device_ids: Sequence[str] = (),
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._session().request(method, url, json=payload) as response:
                if response.status >= 400:
                    detail = (await response.text())[:200]
                    raise RemoteCommandError(
                        command,
                        f"HTTP {response.status}: {detail}" if detail else f"HTTP {response.status}",
                        device_ids,
                    )
                if response.content_type == "application/json":
                    return await response.json()
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteCommandError(command, str(e) or type(e).__name__, device_ids) from e

    async def _command(self, command: str, device_ids: Sequence[str], **params: Any) -> None:
        ids = list(device_ids)
        logger.debug("Sending command", command=command, device_count=len(ids))
        await self._request("POST", f"/commands/{command}", command, {"deviceIds": ids, **params}, ids)

    # ---------------- listing ----------------

    async def list_devices(self) -> List[DeviceState]:
        data = await self._request("GET", "/devices", "get_devices")
        try:
            return _device_list.validate_python(data or [])
        except ValidationError as e:
            raise RemoteCommandError("get_devices", f"Malformed device listing: {e}") from e

    # ---------------- commands ----------------

    async def restart(self, device_ids: Sequence[str]) -> None:
        await self._command("restart_devices", device_ids)

    async def request_battery(self, device_ids: Sequence[str]) -> None:
        await self._command("request_battery", device_ids)

    async def get_volume(self, device_ids: Sequence[str]) -> None:
        await self._command("get_volume", device_ids)

    async def set_volume(self, device_ids: Sequence[str], level: int) -> None:
        await self._command("set_volume", device_ids, level=level)

    async def ping(self, device_ids: Sequence[str]) -> None:
        await self._command("ping_devices", device_ids)

    async def launch_app(self, device_ids: Sequence[str], package_name: str) -> None:
        await self._command("launch_app", device_ids, packageName=package_name)

    async def uninstall_app(self, device_ids: Sequence[str], package_name: str) -> None:
        await self._command("uninstall_app", device_ids, packageName=package_name)

    async def install_local(self, device_ids: Sequence[str], filename: str) -> None:
        await self._command("install_local_apk", device_ids, filename=filename)

    async def install_remote(self, device_ids: Sequence[str], url: str) -> None:
        await self._command("install_remote_apk", device_ids, url=url)

    async def execute_shell(self, device_ids: Sequence[str], command: str) -> None:
        await self._command("execute_shell", device_ids, command=command)

    async def close_all_apps(self, device_ids: Sequence[str]) -> None:
        await self._command("close_all_apps", device_ids)

    async def display_message(self, device_ids: Sequence[str], message: str) -> None:
        await self._command("display_message", device_ids, message=message)

    async def get_installed_apps(self, device_ids: Sequence[str]) -> None:
        await self._command("get_installed_apps", device_ids)

    async def set_display_name(self, serial: str, name: Optional[str]) -> None:
        await self._request(
            "POST", "/commands/set_device_name", "set_device_name",
            {"serial": serial, "name": name},
        )
