from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional, Sequence

from padbridge.protocol.ecodes import BTN_LEFT, BTN_MIDDLE, BTN_RIGHT, EV_KEY, EV_REL, REL_WHEEL, REL_X, REL_Y
from padbridge.protocol.records import InputEvent, encode_events, syn_report

logger = logging.getLogger(__name__)

MOUSE_BUTTON_CODES = (BTN_LEFT, BTN_RIGHT, BTN_MIDDLE)


def mouse_move_records(dx: int, dy: int) -> bytes:
    return encode_events([InputEvent(EV_REL, REL_X, dx), InputEvent(EV_REL, REL_Y, dy), syn_report()])


def click_records(button: int, pressed: bool) -> bytes:
    code = MOUSE_BUTTON_CODES[button]
    return encode_events([InputEvent(EV_KEY, code, int(pressed)), syn_report()])


def scroll_records(delta: int) -> bytes:
    return encode_events([InputEvent(EV_REL, REL_WHEEL, delta), syn_report()])


def key_records(keycode: int, pressed: bool) -> bytes:
    return encode_events([InputEvent(EV_KEY, keycode, int(pressed)), syn_report()])


class SyntheticHid:
    """
    Writer side of the uinput helper: spawns it and pipes encoded records to
    its stdin. If the helper cannot be spawned or has exited, every action is
    a no-op that returns False.
    """

    def __init__(self, argv: Optional[Sequence[str]]) -> None:
        self.argv = list(argv or [])
        self._proc: Optional[asyncio.subprocess.Process] = None

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        if not self.argv or self.running:
            return
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv, stdin=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.warning("uinput helper not available (%s): %s", self.argv[0], e)
            self._proc = None
            return
        logger.info("uinput helper started (pid %d)", self._proc.pid)

    def write(self, data: bytes) -> bool:
        proc = self._proc
        if proc is None or proc.stdin is None:
            return False
        if proc.returncode is not None or proc.stdin.is_closing():
            logger.warning("uinput helper exited (code %s)", proc.returncode)
            self._proc = None
            return False
        try:
            proc.stdin.write(data)
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning("uinput helper pipe closed: %s", e)
            self._proc = None
            return False
        return True

    def move(self, dx: int, dy: int) -> bool:
        return self.write(mouse_move_records(dx, dy))

    def click(self, button: int, pressed: bool) -> bool:
        return self.write(click_records(button, pressed))

    def scroll(self, delta: int) -> bool:
        return self.write(scroll_records(delta))

    def key(self, keycode: int, pressed: bool) -> bool:
        return self.write(key_records(keycode, pressed))

    async def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.returncode is not None:
            return
        if proc.stdin is not None:
            proc.stdin.close()
        proc.terminate()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(proc.wait(), timeout=2.0)
