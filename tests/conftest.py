from __future__ import annotations

from typing import Optional

import pytest

from padbridge.input.calibration import AxisLayout, Calibration, fallback_ranges
from padbridge.input.devices import DetectedDevice
from padbridge.input.reader import EvdevReader
from padbridge.input.slots import PadMultiplexer
from padbridge.protocol.records import InputEvent, encode_events

# DS4 over Bluetooth (standard layout), a BLE pad reporting GAS/BRAKE and no RX,
# a keyboard (no js handler) and a wired Xbox pad without a B: ABS line.
SAMPLE_DEVICES = """\
I: Bus=0005 Vendor=054c Product=09cc Version=8100
N: Name="Wireless Controller"
P: Phys=dc:a6:32:00:00:01
S: Sysfs=/devices/virtual/misc/uhid/0005:054C:09CC.0001/input/input5
U: Uniq=a4:ae:12:34:56:78
H: Handlers=event5 js0
B: PROP=0
B: EV=1b
B: KEY=7fdb000000000000 0 0 0 0
B: ABS=3003f
B: MSC=10

I: Bus=0005 Vendor=3537 Product=1053 Version=0001
N: Name="GameSir-T4n Lite"
U: Uniq=11:22:33:44:55:66
H: Handlers=kbd event7 js1
B: EV=1b
B: ABS=30627

I: Bus=0003 Vendor=046d Product=c31c Version=0110
N: Name="Logitech USB Keyboard"
U: Uniq=
H: Handlers=sysrq kbd leds event2
B: EV=120013

I: Bus=0003 Vendor=045e Product=028e Version=0114
N: Name="Microsoft X-Box 360 pad"
U: Uniq=
H: Handlers=event9 js2
B: EV=20000b
"""


def make_device(
    path: str = "/dev/input/event5",
    *,
    name: str = "Wireless Controller",
    vendor: str = "054c",
    bus: str = "0005",
    uniq: str = "",
    abs_caps: int = 0x3003F,
) -> DetectedDevice:
    return DetectedDevice(
        name=name,
        event_path=path,
        vendor=vendor,
        product="09cc",
        uniq=uniq,
        bus=bus,
        abs_caps=abs_caps,
    )


def frame(*events: tuple[int, int, int]) -> bytes:
    """Encode (type, code, value) tuples as raw records."""
    return encode_events([InputEvent(*e) for e in events])


class FakeReader(EvdevReader):
    """EvdevReader without a file descriptor; tests push bytes with feed()."""

    instances: list["FakeReader"] = []
    unavailable: set[str] = set()

    def __init__(self, path, translator, *, on_frame, on_lost):
        super().__init__(path, translator, on_frame=on_frame, on_lost=on_lost)
        self.started = False
        self.stops = 0
        FakeReader.instances.append(self)

    @property
    def running(self) -> bool:
        return self.started

    def start(self) -> None:
        if self.path in FakeReader.unavailable:
            raise PermissionError(13, "Permission denied")
        self.started = True

    def stop(self) -> None:
        self.stops += 1
        self.started = False

    def unplug(self) -> None:
        self.started = False
        self.on_lost("end of stream")


def fake_calibrator(device: DetectedDevice) -> Calibration:
    from padbridge.input.calibration import detect_layout

    layout = detect_layout(device.abs_caps)
    return Calibration(layout=layout, ranges=fallback_ranges(device.vendor, layout), source="fallback")


class Recorder:
    def __init__(self) -> None:
        self.frames: list[tuple[int, dict]] = []
        self.assignments: list[tuple[int, Optional[str]]] = []

    def on_frame(self, index, state) -> None:
        self.frames.append((index, state.to_dict()))

    def on_assignment(self, index, device) -> None:
        self.assignments.append((index, device.event_path if device else None))


@pytest.fixture(autouse=True)
def _reset_fake_readers():
    FakeReader.instances = []
    FakeReader.unavailable = set()
    yield


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def mux(recorder) -> PadMultiplexer:
    return PadMultiplexer(
        on_frame=recorder.on_frame,
        on_assignment=recorder.on_assignment,
        calibrator=fake_calibrator,
        reader_factory=FakeReader,
    )


@pytest.fixture
def devices_file(tmp_path):
    p = tmp_path / "devices"
    p.write_text(SAMPLE_DEVICES, encoding="utf-8")
    return p


__all__ = ["AxisLayout", "FakeReader", "SAMPLE_DEVICES", "frame", "make_device"]
