from __future__ import annotations

import asyncio
import errno
import logging
import os
from typing import Callable, Optional

from padbridge.protocol.records import EVENT_SIZE, decode_events

from .pad import PadState, PadTranslator

logger = logging.getLogger(__name__)

READ_CHUNK = EVENT_SIZE * 64


class EvdevReader:
    """
    Non-blocking reader of one /dev/input/eventN stream, driven by the event loop.

    Each readable callback decodes the whole chunk synchronously, so records of
    one device are folded strictly in arrival order and nothing observes a
    frame before its SYN_REPORT. `on_frame(state)` fires once per SYN_REPORT;
    `on_lost(reason)` fires once if the stream errors out or hits EOF.
    """

    def __init__(
        self,
        path: str,
        translator: PadTranslator,
        *,
        on_frame: Callable[[PadState], None],
        on_lost: Callable[[str], None],
    ) -> None:
        self.path = path
        self.translator = translator
        self.on_frame = on_frame
        self.on_lost = on_lost
        self._fd: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending = b""

    @property
    def running(self) -> bool:
        return self._fd is not None

    def start(self) -> None:
        """Open the stream and register with the running loop (raises OSError)."""
        if self._fd is not None:
            return
        loop = asyncio.get_running_loop()
        fd = os.open(self.path, os.O_RDONLY | os.O_NONBLOCK)
        try:
            loop.add_reader(fd, self._on_readable)
        except Exception:
            os.close(fd)
            raise
        self._fd = fd
        self._loop = loop

    def stop(self) -> None:
        """Close the stream; safe to call repeatedly."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        if self._loop is not None:
            self._loop.remove_reader(fd)
        self._loop = None
        self._pending = b""
        try:
            os.close(fd)
        except OSError:
            pass

    def feed(self, data: bytes) -> int:
        """Fold raw bytes into the translator; returns the number of frames emitted."""
        events, self._pending = decode_events(self._pending + data)
        frames = 0
        for event in events:
            if self.translator.apply(event):
                frames += 1
                self.on_frame(self.translator.snapshot())
        return frames

    def _lost(self, reason: str) -> None:
        if self._fd is None:
            return
        self.stop()
        self.on_lost(reason)

    def _on_readable(self) -> None:
        if self._fd is None:
            return
        try:
            data = os.read(self._fd, READ_CHUNK)
        except OSError as e:
            if e.errno in (errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR):
                return
            logger.warning("read error on %s: %s", self.path, e)
            self._lost(str(e))
            return
        if not data:
            self._lost("end of stream")
            return
        self.feed(data)
