import asyncio
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from fleetsync.channel.adapter import EventChannelAdapter
from fleetsync.channel.transport import AgentEventStream
from fleetsync.commands.client import AgentCommandClient
from fleetsync.core.exceptions import ChannelInitError, RemoteCommandError


async def wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestAgentCommandClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for the agent HTTP command client"""

    async def asyncSetUp(self):
        self.requests = []
        self.fail_with = None
        self.listing = []

        async def command(request):
            body = await request.json()
            self.requests.append((request.match_info["name"], body))
            if self.fail_with is not None:
                return web.Response(status=self.fail_with, text="adb offline")
            return web.json_response({"ok": True})

        async def devices(request):
            return web.json_response(self.listing)

        app = web.Application()
        app.router.add_post("/commands/{name}", command)
        app.router.add_get("/devices", devices)
        self.server = TestServer(app)
        await self.server.start_server()
        self.client = AgentCommandClient(str(self.server.make_url("/")), timeout=5)

    async def asyncTearDown(self):
        await self.client.close()
        await self.server.close()

    async def test_command_payload(self):
        await self.client.set_volume(["D1", "D2"], 70)

        self.assertEqual(self.requests, [("set_volume", {"deviceIds": ["D1", "D2"], "level": 70})])

    async def test_command_names(self):
        await self.client.restart(["D1"])
        await self.client.ping(["D1"])
        await self.client.launch_app(["D1"], "com.arcade.racer")
        await self.client.install_local(["D1"], "racer.apk")

        self.assertEqual([name for name, _ in self.requests],
                         ["restart_devices", "ping_devices", "launch_app", "install_local_apk"])
        self.assertEqual(self.requests[2][1]["packageName"], "com.arcade.racer")
        self.assertEqual(self.requests[3][1]["filename"], "racer.apk")

    async def test_rename_targets_serial(self):
        await self.client.set_display_name("SN-1", "Bay 2")

        self.assertEqual(self.requests, [("set_device_name", {"serial": "SN-1", "name": "Bay 2"})])

    async def test_http_error_rejects(self):
        self.fail_with = 500

        with self.assertRaises(RemoteCommandError) as ctx:
            await self.client.restart(["D1", "D2"])

        self.assertEqual(ctx.exception.command, "restart_devices")
        self.assertEqual(ctx.exception.device_ids, ["D1", "D2"])
        self.assertIn("HTTP 500", ctx.exception.message)

    async def test_list_devices(self):
        self.listing = [{
            "info": {"id": "D1", "model": "Quest 3", "serial": "SN-1", "ip": "10.0.0.1",
                     "customName": "Bay 1"},
            "battery": {"headsetLevel": 64, "isCharging": True},
            "isConnected": True,
        }]

        devices = await self.client.list_devices()

        self.assertEqual(len(devices), 1)
        self.assertEqual(devices[0].info.display_name, "Bay 1")
        self.assertEqual(devices[0].battery.headset_level, 64)

    async def test_malformed_listing_rejects(self):
        self.listing = [{"info": {"model": "no id"}}]

        with self.assertRaises(RemoteCommandError):
            await self.client.list_devices()

    async def test_unreachable_agent_rejects(self):
        client = AgentCommandClient("http://127.0.0.1:1", timeout=2)
        try:
            with self.assertRaises(RemoteCommandError):
                await client.ping(["D1"])
        finally:
            await client.close()


class TestAgentEventStream(unittest.IsolatedAsyncioTestCase):
    """Test cases for the websocket event transport"""

    async def asyncSetUp(self):
        self.connections = 0

        async def events(request):
            self.connections += 1
            ws = web.WebSocketResponse()
            await ws.prepare(request)
            await ws.send_str("not json")
            await ws.send_json({"type": "info", "message": f"hello {self.connections}"})
            if self.connections == 1:
                await ws.close()
                return ws
            async for _ in ws:
                pass
            return ws

        app = web.Application()
        app.router.add_get("/events", events)
        self.server = TestServer(app)
        await self.server.start_server()
        self.url = str(self.server.make_url("/events"))

    async def asyncTearDown(self):
        await self.server.close()

    async def test_reconnects_and_reports(self):
        received = []
        reconnected = asyncio.Event()

        async def handler(event):
            received.append(event.message)

        stream = AgentEventStream(self.url, reconnect_delay=0.1, on_reconnect=reconnected.set)
        close = await stream.listen(handler)
        try:
            await asyncio.wait_for(reconnected.wait(), 5)
            await wait_for(lambda: len(received) == 2)
        finally:
            await close()

        self.assertEqual(received, ["hello 1", "hello 2"])
        self.assertEqual(self.connections, 2)

    async def test_first_connect_failure_surfaces(self):
        stream = AgentEventStream(str(self.server.make_url("/missing")))
        adapter = EventChannelAdapter(stream)

        with self.assertRaises(ChannelInitError):
            await adapter.initialize()

        self.assertFalse(adapter.is_initialized)


if __name__ == '__main__':
    unittest.main()
