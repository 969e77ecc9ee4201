from __future__ import annotations

import logging
import os
import re
import struct
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEVICES_FILE = "/proc/bus/input/devices"
INPUT_DIR = "/dev/input"
POWER_SUPPLY_DIR = "/sys/class/power_supply"

SONY_VENDOR = "054c"

LONG_BITS = struct.calcsize("l") * 8

_JS_HANDLER = re.compile(r"\bjs\d+\b")
_EVENT_HANDLER = re.compile(r"\bevent(\d+)\b")


@dataclass(frozen=True)
class DetectedDevice:
    name: str
    event_path: str
    vendor: str  # 4 hex digits, as printed by the kernel
    product: str
    uniq: str  # MAC for Bluetooth devices, "" otherwise
    bus: str
    abs_caps: int  # ABS capability bitmask ("B: ABS=" line)


def _field(lines: list[str], prefix: str) -> str:
    for line in lines:
        if line.startswith(prefix):
            return line[len(prefix):].strip()
    return ""


def _id_field(info: str, key: str) -> str:
    m = re.search(rf"{key}=(\w+)", info)
    return m.group(1) if m else "0000"


def parse_bitmask(text: str, word_bits: int = LONG_BITS) -> int:
    """
    Parse a `B:` capability line value into a 64-bit mask.

    The kernel prints one hex word per `long`, most significant first, so
    the word width follows the host (32 bits on a 32-bit Pi kernel). Bits
    above 63 are dropped; every axis code the bridge uses is below that.
    """
    value = 0
    for word in text.split():
        value = (value << word_bits) | int(word, 16)
    return value & 0xFFFF_FFFF_FFFF_FFFF


def parse_devices(text: str, input_dir: str = INPUT_DIR) -> list[DetectedDevice]:
    """
    Parse the kernel's input-device registry into joystick devices.

    A block is kept only when its handlers include both a legacy `jsN` and an
    `eventN` interface. Blocks without a `B: ABS=` line get abs_caps=0.
    """
    devices: list[DetectedDevice] = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        lines = block.splitlines()
        handlers = _field(lines, "H: Handlers=")
        event = _EVENT_HANDLER.search(handlers)
        if not _JS_HANDLER.search(handlers) or not event:
            continue

        info = _field(lines, "I: ")
        try:
            abs_caps = parse_bitmask(_field(lines, "B: ABS="))
        except ValueError:
            abs_caps = 0

        devices.append(
            DetectedDevice(
                name=_field(lines, "N: Name=").strip('"'),
                event_path=os.path.join(input_dir, f"event{event.group(1)}"),
                vendor=_id_field(info, "Vendor"),
                product=_id_field(info, "Product"),
                uniq=_field(lines, "U: Uniq="),
                bus=_id_field(info, "Bus"),
                abs_caps=abs_caps,
            )
        )
    return devices


def scan(devices_file: str = DEVICES_FILE, input_dir: str = INPUT_DIR) -> list[DetectedDevice]:
    try:
        with open(devices_file, "r", encoding="utf-8", errors="replace") as f:
            text = f.read()
    except OSError as e:
        logger.error("failed to scan input devices: %s", e)
        return []
    return parse_devices(text, input_dir)


def diff_paths(
    prev: Iterable[DetectedDevice], curr: Iterable[DetectedDevice]
) -> tuple[set[str], set[str]]:
    """(added, removed) event paths between two scans."""
    before = {d.event_path for d in prev}
    after = {d.event_path for d in curr}
    return after - before, before - after


# Presentation helpers (pure)


def controller_label(dev: DetectedDevice) -> str:
    v = dev.vendor.lower()
    n = dev.name.lower()
    if v == SONY_VENDOR:
        return "PlayStation"
    if v == "045e":
        return "Xbox"
    if v == "2dc8":
        return "8BitDo"
    if "gamesir" in n:
        return "GameSir"
    if "xbox" in n:
        return "Xbox"
    if "wireless controller" in n or "playstation" in n:
        return "PlayStation"
    if "pro controller" in n:
        return "Switch Pro"
    return "Gamepad"


def connection_type(dev: DetectedDevice) -> str:
    if dev.bus == "0005":
        return "bluetooth"
    if dev.bus == "0003":
        return "usb"
    return "other"


def input_type(dev: DetectedDevice) -> str:
    if dev.bus == "0005":
        return "Bluetooth"
    n = dev.name.lower()
    if any(k in n for k in ("2.4g", "dongle", "receiver")):
        return "2.4G Dongle"
    if dev.bus == "0003":
        return "USB"
    return "Other"


_ICONS = {
    "PlayStation": "🎮",
    "Xbox": "🟢",
    "GameSir": "🕹️",
    "8BitDo": "🔴",
    "Switch Pro": "🔵",
}


def controller_icon(dev: DetectedDevice) -> str:
    return _ICONS.get(controller_label(dev), "🎮")


def battery_info(dev: DetectedDevice, power_supply_dir: str = POWER_SUPPLY_DIR) -> Optional[dict]:
    """Battery level of a Bluetooth controller, matched by MAC in power_supply uevents."""
    if dev.bus != "0005" or not dev.uniq:
        return None
    mac = dev.uniq.replace(":", "").lower()
    try:
        entries = sorted(os.listdir(power_supply_dir))
    except OSError:
        return None
    for entry in entries:
        base = os.path.join(power_supply_dir, entry)
        try:
            with open(os.path.join(base, "uevent"), encoding="utf-8") as f:
                uevent = f.read().replace(":", "").lower()
            if mac not in uevent and mac not in entry.replace(":", "").lower():
                continue
            with open(os.path.join(base, "capacity"), encoding="utf-8") as f:
                capacity = f.read().strip()
            with open(os.path.join(base, "status"), encoding="utf-8") as f:
                status = f.read().strip()
        except OSError:
            continue
        try:
            level = int(capacity)
        except ValueError:
            level = -1
        return {"level": level, "status": status}
    return None


def serialize_device(dev: DetectedDevice, power_supply_dir: str = POWER_SUPPLY_DIR) -> dict:
    return {
        "name": dev.name,
        "eventPath": dev.event_path,
        "vendor": dev.vendor,
        "product": dev.product,
        "uniq": dev.uniq,
        "bus": dev.bus,
        "label": controller_label(dev),
        "connectionType": connection_type(dev),
        "inputType": input_type(dev),
        "icon": controller_icon(dev),
        "battery": battery_info(dev, power_supply_dir),
    }
