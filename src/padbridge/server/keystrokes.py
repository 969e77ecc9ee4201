from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from .rpc import RpcChannel, RpcError

logger = logging.getLogger(__name__)

# id -> (key, code, windowsVirtualKeyCode)
SPECIAL_KEYS: tuple[tuple[str, str, int], ...] = (
    ("Backspace", "Backspace", 8),
    ("Enter", "Enter", 13),
    ("Delete", "Delete", 46),
    ("Tab", "Tab", 9),
    ("Escape", "Escape", 27),
    ("ArrowUp", "ArrowUp", 38),
    ("ArrowDown", "ArrowDown", 40),
    ("ArrowLeft", "ArrowLeft", 37),
    ("ArrowRight", "ArrowRight", 39),
    ("Home", "Home", 36),
    ("End", "End", 35),
)


def _fetch_targets_sync(base_url: str, timeout_s: float) -> list:
    url = base_url.rstrip("/") + "/json"
    with urllib.request.urlopen(url, timeout=timeout_s) as resp:
        return json.loads(resp.read().decode("utf-8"))


async def find_page_target(base_url: str, timeout_s: float) -> Optional[str]:
    """WebSocket debugger URL of the first page target, or None."""
    try:
        targets = await asyncio.to_thread(_fetch_targets_sync, base_url, timeout_s)
    except (urllib.error.URLError, OSError, ValueError) as e:
        logger.debug("DevTools endpoint %s unreachable: %s", base_url, e)
        return None
    for target in targets if isinstance(targets, list) else []:
        if isinstance(target, dict) and target.get("type") == "page":
            return target.get("webSocketDebuggerUrl")
    return None


class KeystrokeInjector:
    """
    Text insertion and discrete key presses on the kiosk page, over a
    DevTools-protocol socket kept open between calls.
    """

    def __init__(
        self,
        cdp_url: str,
        *,
        timeout_s: float = 5.0,
        find_target: Callable[[str, float], Any] = find_page_target,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.cdp_url = cdp_url
        self.timeout_s = timeout_s
        self._find_target = find_target
        self._connect = connect
        self._ws: Any = None
        self._channel: Optional[RpcChannel] = None
        self._reader: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    async def _ensure_channel(self) -> RpcChannel:
        if self._channel is not None and self._reader is not None and not self._reader.done():
            return self._channel
        await self.close()
        ws_url = await self._find_target(self.cdp_url, self.timeout_s)
        if not ws_url:
            raise RpcError("Kiosk not reachable (CDP)")
        try:
            self._ws = await self._connect(ws_url, open_timeout=self.timeout_s, max_size=2**22)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise RpcError(f"WebSocket connect failed: {e}") from e
        self._channel = RpcChannel(self._ws.send, first_id=1)
        self._reader = asyncio.create_task(self._read(self._ws, self._channel))
        return self._channel

    async def _read(self, ws: Any, channel: RpcChannel) -> None:
        try:
            async for raw in ws:
                channel.dispatch(raw)
        except WebSocketException as e:
            logger.debug("DevTools socket closed: %s", e)
        finally:
            channel.fail_pending("DevTools socket closed")

    async def _call(self, method: str, params: dict) -> Any:
        async with self._lock:
            channel = await self._ensure_channel()
        try:
            return await channel.call(method, params, timeout=self.timeout_s)
        except WebSocketException as e:
            await self.close()
            raise RpcError(str(e)) from e

    async def insert_text(self, text: str) -> None:
        await self._call("Input.insertText", {"text": text})

    async def dispatch_key(self, key_id: int) -> None:
        if not (0 <= key_id < len(SPECIAL_KEYS)):
            raise ValueError(f"unknown special key {key_id}")
        key, code, vk = SPECIAL_KEYS[key_id]
        base = {"key": key, "code": code, "windowsVirtualKeyCode": vk, "nativeVirtualKeyCode": vk}
        down = {"type": "keyDown", **base}
        if key == "Enter":
            down["text"] = "\r"
        await self._call("Input.dispatchKeyEvent", down)
        await self._call("Input.dispatchKeyEvent", {"type": "keyUp", **base})

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        ws, self._ws = self._ws, None
        self._channel = None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if ws is not None:
            with contextlib.suppress(OSError, WebSocketException):
                await ws.close()
