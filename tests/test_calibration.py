import pytest
from conftest import make_device

from padbridge.input.calibration import (
    AxisLayout,
    AxisRange,
    calibrate,
    detect_layout,
    eviocgabs,
    fallback_ranges,
    normalize,
)
from padbridge.protocol.ecodes import ABS_BRAKE, ABS_GAS, ABS_HAT0X, ABS_RX, ABS_RZ, ABS_X, ABS_Z


def test_detect_layout():
    assert detect_layout(0x3003F) is AxisLayout.STANDARD
    assert detect_layout(0x30627) is AxisLayout.GAS_BRAKE
    # RX present wins even when GAS is reported
    assert detect_layout((1 << ABS_RX) | (1 << ABS_GAS)) is AxisLayout.STANDARD
    assert detect_layout(0) is AxisLayout.STANDARD


@pytest.mark.parametrize(
    "value,rng,expected",
    [
        (0, AxisRange(0, 255), 0),
        (255, AxisRange(0, 255), 255),
        (100, AxisRange(0, 255), 100),
        (-32768, AxisRange(-32768, 32767), 0),
        (32767, AxisRange(-32768, 32767), 255),
        (0, AxisRange(-32768, 32767), 128),
        (32767, AxisRange(0, 65535), 128),
        (-1, AxisRange(-1, 1), 0),
        (0, AxisRange(-1, 1), 128),
        (1, AxisRange(-1, 1), 255),
        (5000, AxisRange(0, 1023), 255),
        (-10, AxisRange(0, 1023), 0),
        (42, AxisRange(7, 7), 128),
    ],
)
def test_normalize(value, rng, expected):
    assert normalize(value, rng) == expected


def test_fallback_first_party_vs_generic():
    sony = fallback_ranges("054C")
    assert sony[ABS_X] == AxisRange(0, 255)
    assert sony[ABS_Z] == AxisRange(0, 255)

    generic = fallback_ranges("045e")
    assert generic[ABS_X] == AxisRange(-32768, 32767)
    assert generic[ABS_Z] == AxisRange(0, 1023)
    assert generic[ABS_HAT0X] == AxisRange(-1, 1)


def test_fallback_gas_brake_routes_z_as_stick():
    ranges = fallback_ranges("3537", AxisLayout.GAS_BRAKE)
    assert ranges[ABS_Z] == AxisRange(-32768, 32767)
    assert ranges[ABS_RZ] == AxisRange(-32768, 32767)
    assert ranges[ABS_GAS] == AxisRange(0, 1023)
    assert ranges[ABS_BRAKE] == AxisRange(0, 1023)


def test_calibrate_uses_hardware_ranges():
    hw = {ABS_X: AxisRange(0, 65535)}
    cal = calibrate(make_device(), query=lambda path: hw)
    assert cal.source == "hardware"
    assert cal.ranges == hw
    assert cal.layout is AxisLayout.STANDARD


def test_calibrate_falls_back_when_query_empty(caplog):
    dev = make_device("/dev/input/event7", name="GameSir-T4n Lite", vendor="3537", abs_caps=0x30627)
    cal = calibrate(dev, query=lambda path: {})
    assert cal.source == "fallback"
    assert cal.layout is AxisLayout.GAS_BRAKE
    assert cal.ranges[ABS_Z] == AxisRange(-32768, 32767)
    assert "fallback" in caplog.text


def test_eviocgabs_encoding():
    # _IOR('E', 0x40 + ABS_X, 24)
    assert eviocgabs(ABS_X) == 0x80184540
    assert eviocgabs(ABS_RZ) == 0x80184545
