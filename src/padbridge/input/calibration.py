from __future__ import annotations

import enum
import logging
import os
import struct
from dataclasses import dataclass, field
from typing import Callable

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
)

from .devices import SONY_VENDOR, DetectedDevice

logger = logging.getLogger(__name__)

CALIBRATED_AXES = (
    ABS_X,
    ABS_Y,
    ABS_Z,
    ABS_RX,
    ABS_RY,
    ABS_RZ,
    ABS_GAS,
    ABS_BRAKE,
    ABS_HAT0X,
    ABS_HAT0Y,
)


@dataclass(frozen=True)
class AxisRange:
    minimum: int
    maximum: int


class AxisLayout(str, enum.Enum):
    # RX/RY = right stick, Z/RZ = triggers (Xbox, DS4)
    STANDARD = "standard"
    # Z/RZ = right stick, GAS/BRAKE = triggers (BLE HID pads, generic HID)
    GAS_BRAKE = "gas_brake"


@dataclass(frozen=True)
class Calibration:
    layout: AxisLayout
    ranges: dict[int, AxisRange] = field(default_factory=dict)
    source: str = "hardware"  # or "fallback"


def detect_layout(abs_caps: int) -> AxisLayout:
    has_rx = bool(abs_caps & (1 << ABS_RX))
    has_gas = bool(abs_caps & (1 << ABS_GAS))
    if not has_rx and has_gas:
        return AxisLayout.GAS_BRAKE
    return AxisLayout.STANDARD


def normalize(value: int, rng: AxisRange) -> int:
    """
    Map a raw value onto 0..255 (min -> 0, max -> 255, clamped).

    Integer ceiling division: the rest position of symmetric ranges
    (-32768..32767, -1..1, 0..65535) lands on 128 and 0..255 maps to itself.
    """
    span = rng.maximum - rng.minimum
    if span == 0:
        return 128
    scaled = -((-(value - rng.minimum) * 255) // span)
    return max(0, min(255, scaled))


# ioctl encoding (linux/asm-generic/ioctl.h)

_IOC_NRBITS = 8
_IOC_TYPEBITS = 8
_IOC_SIZEBITS = 14

_IOC_NRSHIFT = 0
_IOC_TYPESHIFT = _IOC_NRSHIFT + _IOC_NRBITS
_IOC_SIZESHIFT = _IOC_TYPESHIFT + _IOC_TYPEBITS
_IOC_DIRSHIFT = _IOC_SIZESHIFT + _IOC_SIZEBITS

_IOC_READ = 2

# struct input_absinfo: value, minimum, maximum, fuzz, flat, resolution
_ABSINFO = struct.Struct("6i")


def _ioctl_ior(type_char: str, nr: int, size: int) -> int:
    return (
        (_IOC_READ << _IOC_DIRSHIFT)
        | (ord(type_char) << _IOC_TYPESHIFT)
        | (nr << _IOC_NRSHIFT)
        | (size << _IOC_SIZESHIFT)
    )


def eviocgabs(abs_code: int) -> int:
    # EVIOCGABS(abs) = _IOR('E', 0x40 + abs, struct input_absinfo)
    return _ioctl_ior("E", 0x40 + abs_code, _ABSINFO.size)


def query_axis_ranges(event_path: str, axes: tuple[int, ...] = CALIBRATED_AXES) -> dict[int, AxisRange]:
    """
    Ask the driver for each axis' min/max. Axes whose query fails are left out;
    an unopenable device yields an empty map.
    """
    import fcntl

    ranges: dict[int, AxisRange] = {}
    try:
        fd = os.open(event_path, os.O_RDONLY | os.O_NONBLOCK)
    except OSError as e:
        logger.debug("cannot open %s for calibration: %s", event_path, e)
        return ranges
    try:
        for code in axes:
            buf = bytearray(_ABSINFO.size)
            try:
                fcntl.ioctl(fd, eviocgabs(code), buf, True)
            except OSError:
                continue
            _value, mn, mx, _fuzz, _flat, _res = _ABSINFO.unpack(buf)
            ranges[code] = AxisRange(mn, mx)
    finally:
        os.close(fd)
    return ranges


def fallback_ranges(vendor: str, layout: AxisLayout = AxisLayout.STANDARD) -> dict[int, AxisRange]:
    is_sony = vendor.lower() == SONY_VENDOR
    stick = AxisRange(0, 255) if is_sony else AxisRange(-32768, 32767)
    trigger = AxisRange(0, 255) if is_sony else AxisRange(0, 1023)

    if layout is AxisLayout.GAS_BRAKE:
        sticks = (ABS_X, ABS_Y, ABS_Z, ABS_RZ, ABS_RX, ABS_RY)
        triggers = (ABS_GAS, ABS_BRAKE)
    else:
        sticks = (ABS_X, ABS_Y, ABS_RX, ABS_RY)
        triggers = (ABS_Z, ABS_RZ)

    ranges = {code: stick for code in sticks}
    ranges.update({code: trigger for code in triggers})
    ranges[ABS_HAT0X] = AxisRange(-1, 1)
    ranges[ABS_HAT0Y] = AxisRange(-1, 1)
    return ranges


def calibrate(
    device: DetectedDevice,
    query: Callable[[str], dict[int, AxisRange]] = query_axis_ranges,
) -> Calibration:
    """Ranges + layout for a freshly assigned device; decided once per assignment."""
    layout = detect_layout(device.abs_caps)
    ranges = query(device.event_path)
    if ranges:
        return Calibration(layout=layout, ranges=ranges, source="hardware")

    logger.warning(
        "no axis info for %s (%s), using %s fallback ranges",
        device.name,
        device.event_path,
        "first-party" if device.vendor.lower() == SONY_VENDOR else "generic",
    )
    return Calibration(layout=layout, ranges=fallback_ranges(device.vendor, layout), source="fallback")
