from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Observer(Protocol):
    async def send_text(self, data: str) -> None: ...


Message = Union[BaseModel, dict]


def encode(msg: Message) -> str:
    if isinstance(msg, BaseModel):
        msg = msg.model_dump(mode="json")
    return json.dumps(msg, separators=(",", ":"), ensure_ascii=False)


class Broadcaster:
    """
    Fan-out of JSON push messages to the panel's WebSocket observers.

    `publish` is callable from synchronous code (slot changes, console status);
    messages are queued and sent in order by `run()`. An observer whose send
    fails is dropped on the spot.
    """

    def __init__(self) -> None:
        self.clients: set[Any] = set()
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    def add(self, ws: Observer) -> None:
        self.clients.add(ws)

    def discard(self, ws: Observer) -> None:
        self.clients.discard(ws)

    def publish(self, msg: Message) -> None:
        if self.clients:
            self._queue.put_nowait(encode(msg))

    async def broadcast(self, msg: Union[Message, str]) -> None:
        data = msg if isinstance(msg, str) else encode(msg)
        dead: list[Any] = []
        for ws in list(self.clients):
            try:
                await ws.send_text(data)
            except Exception as e:
                logger.debug("dropping observer: %r", e)
                dead.append(ws)
        for ws in dead:
            self.clients.discard(ws)

    async def run(self) -> None:
        while True:
            data = await self._queue.get()
            await self.broadcast(data)
