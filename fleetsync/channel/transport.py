"""
Websocket transport for the host agent's event stream
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

import aiohttp
import structlog
from pydantic import ValidationError

from fleetsync.schemas.events import AgentEvent, parse_event

logger = structlog.get_logger(__name__)

EventHandler = Callable[[AgentEvent], Awaitable[None]]
ReconnectHook = Callable[[], Union[None, Awaitable[None]]]


class AgentEventStream:
    """Reads JSON events from the agent websocket and hands them to one handler

    The first connection attempt happens inside ``listen`` so a failure there
    surfaces to the caller. Later drops are re-opened after
    ``reconnect_delay`` and reported through ``on_reconnect``, because events
    sent while disconnected are lost.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = 3.0,
        heartbeat: float = 20.0,
        session: Optional[aiohttp.ClientSession] = None,
        on_reconnect: Optional[ReconnectHook] = None,
    ):
        self.url = url
        self.reconnect_delay = max(0.1, reconnect_delay)
        self.heartbeat = heartbeat
        self.on_reconnect = on_reconnect
        self._session = session
        self._owns_session = session is None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def listen(self, handler: EventHandler) -> Callable[[], Awaitable[None]]:
        if self._session is None:
            self._session = aiohttp.ClientSession()

        try:
            ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except Exception:
            await self._close_session()
            raise

        logger.info("Connected to agent event stream", url=self.url)
        self._running = True
        self._task = asyncio.create_task(self._run(ws, handler))
        return self.close

    async def close(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._close_session()
        logger.info("Agent event stream closed", url=self.url)

    async def _close_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _run(self, ws: aiohttp.ClientWebSocketResponse, handler: EventHandler) -> None:
        while self._running:
            await self._pump(ws, handler)
            if not self._running:
                break

            logger.warning("Agent event stream dropped, reconnecting", delay=self.reconnect_delay)
            ws = await self._reconnect()
            if ws is None:
                break

            if self.on_reconnect is not None:
                try:
                    result = self.on_reconnect()
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error("Reconnect hook failed", error=str(e))

    async def _pump(self, ws: aiohttp.ClientWebSocketResponse, handler: EventHandler) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._deliver(msg.data, handler)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("Agent event stream error", error=str(ws.exception()))
                    break
        finally:
            await ws.close()

    async def _deliver(self, raw: str, handler: EventHandler) -> None:
        try:
            event = parse_event(raw)
        except ValidationError as e:
            logger.warning("Dropping malformed event", error=str(e), raw=raw[:200])
            return
        await handler(event)

    async def _reconnect(self) -> Optional[aiohttp.ClientWebSocketResponse]:
        while self._running:
            await asyncio.sleep(self.reconnect_delay)
            try:
                ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
                logger.info("Reconnected to agent event stream", url=self.url)
                return ws
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("Event stream reconnect failed", error=str(e))
        return None
