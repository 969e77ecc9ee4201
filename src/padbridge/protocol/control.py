from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TypeAlias, Union

from .constants import (
    OP_CLICK,
    OP_KEY,
    OP_MOUSE_MOVE,
    OP_SCROLL,
    OP_SPECIAL_KEY,
    OP_TEXT,
)

# Binary frames from the remote-input page. One leading opcode byte, then a
# little-endian payload whose size is fixed per opcode (text is variable).

MOUSE_BUTTONS = ("left", "right", "middle")
NUM_SPECIAL_KEYS = 11


class ControlFrameError(ValueError):
    pass


@dataclass(frozen=True)
class MouseMove:
    dx: int
    dy: int


@dataclass(frozen=True)
class Click:
    button: int
    pressed: bool


@dataclass(frozen=True)
class Scroll:
    delta: int


@dataclass(frozen=True)
class RawKey:
    keycode: int
    pressed: bool


@dataclass(frozen=True)
class InsertText:
    text: str


@dataclass(frozen=True)
class SpecialKey:
    key_id: int


ControlCommand: TypeAlias = Union[MouseMove, Click, Scroll, RawKey, InsertText, SpecialKey]

_FIXED = {
    OP_MOUSE_MOVE: struct.Struct("<hh"),
    OP_CLICK: struct.Struct("<BB"),
    OP_SCROLL: struct.Struct("<h"),
    OP_KEY: struct.Struct("<HB"),
    OP_SPECIAL_KEY: struct.Struct("<B"),
}


def decode_control_frame(data: bytes) -> ControlCommand:
    if not data:
        raise ControlFrameError("empty frame")
    op, payload = data[0], data[1:]

    if op == OP_TEXT:
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ControlFrameError("text frame is not valid UTF-8") from e
        if not text:
            raise ControlFrameError("empty text frame")
        return InsertText(text)

    layout = _FIXED.get(op)
    if layout is None:
        raise ControlFrameError(f"unknown opcode 0x{op:02x}")
    if len(payload) != layout.size:
        raise ControlFrameError(f"opcode 0x{op:02x} expects {layout.size} payload bytes, got {len(payload)}")
    fields = layout.unpack(payload)

    if op == OP_MOUSE_MOVE:
        return MouseMove(*fields)
    if op == OP_CLICK:
        button, pressed = fields
        if button >= len(MOUSE_BUTTONS):
            raise ControlFrameError(f"unknown mouse button {button}")
        return Click(button, bool(pressed))
    if op == OP_SCROLL:
        return Scroll(fields[0])
    if op == OP_KEY:
        keycode, pressed = fields
        return RawKey(keycode, bool(pressed))
    key_id = fields[0]
    if key_id >= NUM_SPECIAL_KEYS:
        raise ControlFrameError(f"unknown special key {key_id}")
    return SpecialKey(key_id)
