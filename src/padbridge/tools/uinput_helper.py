#!/usr/bin/env python
"""
Synthetic HID helper: creates a virtual mouse+keyboard and replays the
24-byte input_event records written to stdin.

Runs as its own process (needs write access to /dev/uinput); the bridge
spawns it and treats its absence as "remote mouse/keys unavailable".
"""

from __future__ import annotations

import signal
import sys

from evdev import UInput, ecodes
from evdev.uinput import UInputError

from padbridge.protocol.records import EVENT_SIZE, decode_events

DEVICE_NAME = "Kiosk Virtual Mouse"
VENDOR = 0x1234
PRODUCT = 0xABCD


def capabilities() -> dict[int, list[int]]:
    return {
        ecodes.EV_REL: [ecodes.REL_X, ecodes.REL_Y, ecodes.REL_WHEEL],
        ecodes.EV_KEY: sorted(
            {ecodes.BTN_LEFT, ecodes.BTN_RIGHT, ecodes.BTN_MIDDLE} | set(range(1, ecodes.KEY_MAX))
        ),
    }


def replay(stream, ui: UInput) -> None:
    pending = b""
    while True:
        chunk = stream.read1(EVENT_SIZE * 16)
        if not chunk:
            return
        events, pending = decode_events(pending + chunk)
        for ev in events:
            ui.write(ev.type, ev.code, ev.value)


def main() -> int:
    signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))
    try:
        ui = UInput(
            events=capabilities(),
            name=DEVICE_NAME,
            vendor=VENDOR,
            product=PRODUCT,
            version=1,
            bustype=ecodes.BUS_VIRTUAL,
        )
    except (OSError, UInputError) as e:
        print(f"uinput-helper: cannot create device: {e}", file=sys.stderr)
        return 1

    print("uinput-helper: device created", file=sys.stderr, flush=True)
    try:
        replay(sys.stdin.buffer, ui)
    except KeyboardInterrupt:
        pass
    finally:
        ui.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
