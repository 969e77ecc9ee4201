from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

# One JSON object per WebSocket text frame: {id?, method, params}.
# Frames with an id expect {id, result} or {id, error}; frames without are
# fire-and-forget.


class RpcError(Exception):
    pass


class RpcTimeout(RpcError):
    pass


class RpcChannel:
    """
    Request/response bookkeeping over an already-open socket.

    `send` is the socket's text-send coroutine. Inbound frames are handed to
    `dispatch`, which resolves the pending call whose id they echo.
    """

    def __init__(self, send: Callable[[str], Awaitable[None]], *, first_id: int = 0) -> None:
        self._send = send
        self._ids = itertools.count(first_id)
        self.pending: dict[int, asyncio.Future] = {}

    @staticmethod
    def encode(method: str, params: Any, id_: Optional[int] = None) -> str:
        frame: dict[str, Any] = {"method": method, "params": params}
        if id_ is not None:
            frame = {"id": id_, **frame}
        return json.dumps(frame, separators=(",", ":"))

    async def notify(self, method: str, params: Any) -> None:
        await self._send(self.encode(method, params))

    async def call(self, method: str, params: Any, *, timeout: float) -> Any:
        id_ = next(self._ids)
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self.pending[id_] = fut
        try:
            await self._send(self.encode(method, params, id_))
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError as e:
            raise RpcTimeout(f"{method} timed out after {timeout}s") from e
        finally:
            self.pending.pop(id_, None)

    def dispatch(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.debug("ignoring non-JSON frame: %r", raw[:80])
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("id"), int):
            return
        fut = self.pending.get(frame["id"])
        if fut is None or fut.done():
            return
        if "error" in frame:
            err = frame["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            fut.set_exception(RpcError(msg or "remote error"))
        else:
            fut.set_result(frame.get("result"))

    def fail_pending(self, reason: str = "connection closed") -> None:
        for fut in self.pending.values():
            if not fut.done():
                fut.set_exception(RpcError(reason))
        self.pending.clear()
