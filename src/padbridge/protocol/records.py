"""
Fixed-layout codec for kernel input_event records.

Both directions use the 64-bit layout (24 bytes, little-endian):

    offset  size  field
    0       16    timeval (sec, usec) - ignored on read, zero or caller-set on write
    16      2     uint16 type
    18      2     uint16 code
    20      4     int32 value

The evdev reader and the synthetic HID encoder share this module so the two
stay bit-compatible.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .ecodes import EV_SYN, SYN_REPORT

EVENT_FORMAT = "<qqHHi"
EVENT_SIZE = struct.calcsize(EVENT_FORMAT)  # 24

_EVENT = struct.Struct(EVENT_FORMAT)


@dataclass(frozen=True)
class InputEvent:
    type: int
    code: int
    value: int


def encode_event(etype: int, code: int, value: int, *, sec: int = 0, usec: int = 0) -> bytes:
    return _EVENT.pack(sec, usec, etype, code, value)


def encode_events(events: list[InputEvent]) -> bytes:
    return b"".join(encode_event(e.type, e.code, e.value) for e in events)


def syn_report() -> InputEvent:
    return InputEvent(EV_SYN, SYN_REPORT, 0)


def decode_events(buf: bytes) -> tuple[list[InputEvent], bytes]:
    """
    Decode as many whole records as `buf` holds.

    Returns (events, remainder); the remainder is the trailing partial record
    (0..23 bytes) to prepend to the next read.
    """
    whole = len(buf) - (len(buf) % EVENT_SIZE)
    events = [
        InputEvent(etype, code, value)
        for _sec, _usec, etype, code, value in _EVENT.iter_unpack(buf[:whole])
    ]
    return events, buf[whole:]
