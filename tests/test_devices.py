from conftest import SAMPLE_DEVICES, make_device

from padbridge.input.devices import (
    battery_info,
    connection_type,
    controller_label,
    diff_paths,
    input_type,
    parse_bitmask,
    parse_devices,
    scan,
    serialize_device,
)
from padbridge.protocol.ecodes import ABS_GAS, ABS_RX


def test_keeps_only_joystick_blocks():
    devs = parse_devices(SAMPLE_DEVICES, "/dev/input")
    assert [d.event_path for d in devs] == ["/dev/input/event5", "/dev/input/event7", "/dev/input/event9"]

    ds4 = devs[0]
    assert ds4.name == "Wireless Controller"
    assert ds4.vendor == "054c"
    assert ds4.product == "09cc"
    assert ds4.bus == "0005"
    assert ds4.uniq == "a4:ae:12:34:56:78"
    assert ds4.abs_caps & (1 << ABS_RX)


def test_abs_caps_parsed_and_defaulted():
    devs = parse_devices(SAMPLE_DEVICES)
    gamesir = devs[1]
    assert gamesir.abs_caps == 0x30627
    assert gamesir.abs_caps & (1 << ABS_GAS)
    assert not gamesir.abs_caps & (1 << ABS_RX)

    xbox = devs[2]
    assert xbox.abs_caps == 0
    assert xbox.uniq == ""


def test_bitmask_multiword_follows_long_width():
    assert parse_bitmask("3003f") == 0x3003F
    assert parse_bitmask("1 3003f", word_bits=64) == 0x3003F
    # 32-bit kernels print 32-bit words
    assert parse_bitmask("1 3003f", word_bits=32) == (1 << 32) | 0x3003F
    assert parse_bitmask("1 0 3003f", word_bits=32) == 0x3003F
    assert parse_bitmask("") == 0


def test_block_needs_both_handlers():
    text = 'I: Bus=0003 Vendor=1234 Product=0001 Version=0001\nN: Name="js only"\nH: Handlers=js3\n'
    assert parse_devices(text) == []


def test_scan_unreadable_registry(tmp_path):
    assert scan(str(tmp_path / "missing"), "/dev/input") == []


def test_scan_reads_file(devices_file, tmp_path):
    devs = scan(str(devices_file), str(tmp_path))
    assert devs[0].event_path == str(tmp_path / "event5")


def test_diff_paths():
    a = make_device("/dev/input/event1")
    b = make_device("/dev/input/event2")
    c = make_device("/dev/input/event3")
    added, removed = diff_paths([a, b], [b, c])
    assert added == {"/dev/input/event3"}
    assert removed == {"/dev/input/event1"}
    assert diff_paths([a], [a]) == (set(), set())


def test_labels_and_connection():
    ds4 = make_device()
    assert controller_label(ds4) == "PlayStation"
    assert connection_type(ds4) == "bluetooth"
    assert input_type(ds4) == "Bluetooth"

    dongle = make_device(name="Generic 2.4G Dongle Pad", vendor="0079", bus="0003")
    assert controller_label(dongle) == "Gamepad"
    assert connection_type(dongle) == "usb"
    assert input_type(dongle) == "2.4G Dongle"

    sir = make_device(name="GameSir-T4n Lite", vendor="3537", bus="0019")
    assert controller_label(sir) == "GameSir"
    assert connection_type(sir) == "other"


def test_battery_from_power_supply(tmp_path):
    supply = tmp_path / "sony_controller_battery_a4:ae:12:34:56:78"
    supply.mkdir()
    (supply / "uevent").write_text("POWER_SUPPLY_NAME=sony_controller_battery_a4:ae:12:34:56:78\n")
    (supply / "capacity").write_text("75\n")
    (supply / "status").write_text("Discharging\n")

    ds4 = make_device(uniq="A4:AE:12:34:56:78")
    assert battery_info(ds4, str(tmp_path)) == {"level": 75, "status": "Discharging"}

    wired = make_device(bus="0003", uniq="")
    assert battery_info(wired, str(tmp_path)) is None
    assert battery_info(ds4, str(tmp_path / "nope")) is None


def test_serialize_device_wire_names(tmp_path):
    out = serialize_device(make_device(), str(tmp_path))
    assert out["eventPath"] == "/dev/input/event5"
    assert out["connectionType"] == "bluetooth"
    assert out["label"] == "PlayStation"
    assert out["battery"] is None
