from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

import websockets
from pydantic import BaseModel
from websockets.exceptions import WebSocketException

from padbridge.input.pad import PadState
from padbridge.protocol.constants import M_INFO, M_PAD_UPDATE
from padbridge.protocol.messages import Ps4Status, Ps4Version

from .rpc import RpcChannel, RpcError

logger = logging.getLogger(__name__)


class ConsoleClient:
    """
    Persistent outbound WebSocket to the console's pad RPC server.

    Reconnects after `reconnect_delay_s` on any close that did not come from
    `disconnect()`. Pad updates are best-effort: while disconnected they are
    dropped; while connected every frame is written in the order it was
    synchronized.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        on_status: Callable[[BaseModel], None],
        reconnect_delay_s: float = 3.0,
        info_timeout_s: float = 2.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.host = host
        self.port = port
        self.reconnect_delay_s = reconnect_delay_s
        self.info_timeout_s = info_timeout_s
        self.connected = False
        self.version = ""
        self.attempts = 0
        self._on_status = on_status
        self._connect = connect
        self._closing = False
        self._ws: Any = None
        self._channel: Optional[RpcChannel] = None
        self._task: Optional[asyncio.Task] = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def intentionally_closed(self) -> bool:
        return self._closing

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"console:{self.url}")

    async def _run(self) -> None:
        while not self._closing:
            self.attempts += 1
            try:
                async with self._connect(
                    self.url, open_timeout=5, ping_interval=20, ping_timeout=20
                ) as ws:
                    await self._session(ws)
            except Exception as e:
                # any connect or session failure schedules a reconnect
                logger.warning("console %s: %s", self.url, str(e) or type(e).__name__)
            self._mark_closed()
            if self._closing:
                break
            logger.info("console %s disconnected, reconnecting in %.1fs", self.url, self.reconnect_delay_s)
            self._on_status(Ps4Status(connected=False))
            await asyncio.sleep(self.reconnect_delay_s)

    async def _session(self, ws: Any) -> None:
        self._ws = ws
        self._channel = RpcChannel(ws.send)
        self._outbox = asyncio.Queue()
        self.connected = True
        logger.info("connected to console at %s", self.url)
        self._on_status(Ps4Status(connected=True, host=self.host, port=self.port))

        writer = asyncio.create_task(self._drain(ws, self._outbox))
        info = asyncio.create_task(self._announce_version())
        try:
            async for raw in ws:
                self._channel.dispatch(raw)
        finally:
            writer.cancel()
            info.cancel()

    def _mark_closed(self) -> None:
        self.connected = False
        self.version = ""
        self._ws = None
        self._outbox = asyncio.Queue()
        if self._channel is not None:
            self._channel.fail_pending()
            self._channel = None

    async def _drain(self, ws: Any, outbox: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbox.get()
            try:
                await ws.send(frame)
            except WebSocketException:
                return

    async def _announce_version(self) -> None:
        info = await self.request_info()
        version = str((info or {}).get("version") or "")
        if version:
            self.version = version
            logger.info("console RemotePad v%s", version)
            self._on_status(Ps4Version(version=version))

    def send_pad_update(self, slot: int, state: PadState) -> bool:
        """Queue one pad frame; returns False (dropped) when not connected."""
        if not self.connected:
            return False
        self._outbox.put_nowait(RpcChannel.encode(M_PAD_UPDATE, state.rpc_params(slot)))
        return True

    async def request_info(self) -> Optional[dict]:
        channel = self._channel
        if not self.connected or channel is None:
            return None
        try:
            result = await channel.call(M_INFO, [], timeout=self.info_timeout_s)
        except (RpcError, WebSocketException) as e:
            logger.debug("console info failed: %s", e)
            return None
        return result if isinstance(result, dict) else None

    async def disconnect(self) -> None:
        """Intentional close: no reconnect is ever scheduled afterwards."""
        self._closing = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        was_connected = self.connected
        self._mark_closed()
        if was_connected or task is not None:
            logger.info("console %s closed", self.url)
        self._on_status(Ps4Status(connected=False))
