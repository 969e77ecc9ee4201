from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, replace

from padbridge.protocol.ecodes import (
    ABS_BRAKE,
    ABS_GAS,
    ABS_HAT0X,
    ABS_HAT0Y,
    ABS_RX,
    ABS_RY,
    ABS_RZ,
    ABS_X,
    ABS_Y,
    ABS_Z,
    BTN_DPAD_DOWN,
    BTN_DPAD_LEFT,
    BTN_DPAD_RIGHT,
    BTN_DPAD_UP,
    BTN_EAST,
    BTN_MODE,
    BTN_NORTH,
    BTN_SELECT,
    BTN_SOUTH,
    BTN_START,
    BTN_THUMBL,
    BTN_THUMBR,
    BTN_TL,
    BTN_TL2,
    BTN_TR,
    BTN_TR2,
    BTN_WEST,
    EV_ABS,
    EV_KEY,
    EV_SYN,
    SYN_REPORT,
)
from padbridge.protocol.records import InputEvent

from .calibration import AxisLayout, AxisRange, normalize

DEFAULT_TRIGGER_THRESHOLD = 10


class Button(enum.IntFlag):
    """Console button bitmask (vendor-neutral; the remote side's layout)."""

    SHARE = 0x0001
    L3 = 0x0002
    R3 = 0x0004
    OPTIONS = 0x0008
    UP = 0x0010
    RIGHT = 0x0020
    DOWN = 0x0040
    LEFT = 0x0080
    L2 = 0x0100
    R2 = 0x0200
    L1 = 0x0400
    R1 = 0x0800
    TRIANGLE = 0x1000
    CIRCLE = 0x2000
    CROSS = 0x4000
    SQUARE = 0x8000
    TOUCHPAD = 0x100000


BUTTON_MAP: dict[int, Button] = {
    BTN_SOUTH: Button.CROSS,
    BTN_EAST: Button.CIRCLE,
    BTN_WEST: Button.TRIANGLE,
    BTN_NORTH: Button.SQUARE,
    BTN_TL: Button.L1,
    BTN_TR: Button.R1,
    BTN_TL2: Button.L2,
    BTN_TR2: Button.R2,
    BTN_SELECT: Button.SHARE,
    BTN_START: Button.OPTIONS,
    BTN_MODE: Button.TOUCHPAD,
    BTN_THUMBL: Button.L3,
    BTN_THUMBR: Button.R3,
    BTN_DPAD_UP: Button.UP,
    BTN_DPAD_DOWN: Button.DOWN,
    BTN_DPAD_LEFT: Button.LEFT,
    BTN_DPAD_RIGHT: Button.RIGHT,
}


@dataclass
class PadState:
    buttons: int = 0
    lx: int = 128
    ly: int = 128
    rx: int = 128
    ry: int = 128
    l2: int = 0
    r2: int = 0

    def reset(self) -> None:
        self.buttons = 0
        self.lx = self.ly = self.rx = self.ry = 128
        self.l2 = self.r2 = 0

    def copy(self) -> PadState:
        return replace(self)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    def rpc_params(self, slot: int) -> list[int]:
        # [slot, buttons, lx, ly, rx, ry, l2, r2, reserved]
        return [slot, self.buttons, self.lx, self.ly, self.rx, self.ry, self.l2, self.r2, 0]


class PadTranslator:
    """
    Folds one device's evdev records into a canonical PadState.

    Records mutate a private working state; `apply` returns True on SYN_REPORT,
    at which point `snapshot()` is a consistent frame.
    """

    def __init__(
        self,
        ranges: dict[int, AxisRange],
        layout: AxisLayout,
        trigger_threshold: int = DEFAULT_TRIGGER_THRESHOLD,
    ) -> None:
        self.ranges = ranges
        self.layout = layout
        self.trigger_threshold = trigger_threshold
        self.working = PadState()

    def snapshot(self) -> PadState:
        return self.working.copy()

    def _norm(self, code: int, value: int) -> int:
        rng = self.ranges.get(code)
        return normalize(value, rng) if rng is not None else value

    def _set_bit(self, bit: Button, on: bool) -> None:
        if on:
            self.working.buttons |= int(bit)
        else:
            self.working.buttons &= ~int(bit)

    def _set_l2(self, value: int) -> None:
        self.working.l2 = value
        self._set_bit(Button.L2, value > self.trigger_threshold)

    def _set_r2(self, value: int) -> None:
        self.working.r2 = value
        self._set_bit(Button.R2, value > self.trigger_threshold)

    def _apply_abs(self, code: int, value: int) -> None:
        s = self.working
        gas_brake = self.layout is AxisLayout.GAS_BRAKE

        if code == ABS_X:
            s.lx = self._norm(code, value)
        elif code == ABS_Y:
            s.ly = self._norm(code, value)
        elif code == ABS_RX:
            s.rx = self._norm(code, value)
        elif code == ABS_RY:
            s.ry = self._norm(code, value)
        elif code == ABS_Z:
            if gas_brake:
                s.rx = self._norm(code, value)
            else:
                self._set_l2(self._norm(code, value))
        elif code == ABS_RZ:
            if gas_brake:
                s.ry = self._norm(code, value)
            else:
                self._set_r2(self._norm(code, value))
        elif code == ABS_BRAKE:
            self._set_l2(self._norm(code, value))
        elif code == ABS_GAS:
            self._set_r2(self._norm(code, value))
        elif code == ABS_HAT0X:
            s.buttons &= ~int(Button.LEFT | Button.RIGHT)
            if value < 0:
                s.buttons |= int(Button.LEFT)
            elif value > 0:
                s.buttons |= int(Button.RIGHT)
        elif code == ABS_HAT0Y:
            s.buttons &= ~int(Button.UP | Button.DOWN)
            if value < 0:
                s.buttons |= int(Button.UP)
            elif value > 0:
                s.buttons |= int(Button.DOWN)

    def apply(self, event: InputEvent) -> bool:
        if event.type == EV_KEY:
            bit = BUTTON_MAP.get(event.code)
            if bit is not None:
                self._set_bit(bit, bool(event.value))
        elif event.type == EV_ABS:
            self._apply_abs(event.code, event.value)
        elif event.type == EV_SYN and event.code == SYN_REPORT:
            return True
        return False
