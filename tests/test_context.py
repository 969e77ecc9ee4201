import asyncio
import functools
import json

from conftest import SAMPLE_DEVICES, FakeReader, fake_calibrator, frame

from padbridge.input.pad import Button
from padbridge.input.slots import PadMultiplexer
from padbridge.protocol.ecodes import ABS_X, BTN_SOUTH, EV_ABS, EV_KEY, EV_SYN, SYN_REPORT
from padbridge.server.config import Settings
from padbridge.server.context import AppContext


class Observer:
    def __init__(self):
        self.messages: list[dict] = []

    async def send_text(self, data):
        self.messages.append(json.loads(data))

    def of_type(self, kind):
        return [m for m in self.messages if m["type"] == kind]


def make_context(devices_file, tmp_path, **overrides):
    settings = Settings(
        devices_file=str(devices_file),
        input_dir="/dev/input",
        power_supply_dir=str(tmp_path / "power_supply"),
        hid_helper_cmd="",
        **overrides,
    )
    return AppContext(
        settings,
        multiplexer_factory=functools.partial(
            PadMultiplexer, calibrator=fake_calibrator, reader_factory=FakeReader
        ),
    )


async def settle(pred, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not pred():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def test_pad_states_tick_reports_active_slots_only(devices_file, tmp_path):
    async def scenario():
        ctx = make_context(devices_file, tmp_path, tick_interval_s=0.01)
        await ctx.scan_once()
        ctx.assign("/dev/input/event5", 1)
        reader = FakeReader.instances[-1]

        # records without a sync boundary are not visible to the tick
        reader.feed(frame((EV_KEY, BTN_SOUTH, 1), (EV_ABS, ABS_X, 0)))
        partial = ctx.pad_states().model_dump(mode="json")

        reader.feed(frame((EV_SYN, SYN_REPORT, 0)))

        obs = Observer()
        ctx.broadcaster.add(obs)
        tasks = [asyncio.create_task(ctx.broadcaster.run()), asyncio.create_task(ctx._tick_loop())]
        await settle(lambda: obs.of_type("padStates"))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        return partial, obs.of_type("padStates")[0]

    partial, tick = asyncio.run(scenario())

    assert partial["msgCount"] == 0
    assert partial["pads"][1]["state"]["buttons"] == 0
    assert partial["pads"][1]["state"]["lx"] == 128

    assert tick["msgCount"] == 1
    assert [p["active"] for p in tick["pads"]] == [False, True, False, False]
    assert [p["state"] is None for p in tick["pads"]] == [True, False, True, True]
    assert tick["pads"][1]["state"]["buttons"] == int(Button.CROSS)
    assert tick["pads"][1]["state"]["lx"] == 0


def test_scan_once_unplug_pushes_controllers_and_assignment(devices_file, tmp_path):
    async def scenario():
        ctx = make_context(devices_file, tmp_path)
        assert await ctx.scan_once() is True
        ctx.assign("/dev/input/event5", 0)

        obs = Observer()
        ctx.broadcaster.add(obs)
        pump = asyncio.create_task(ctx.broadcaster.run())

        # drop the first (DS4) block from the registry
        devices_file.write_text(SAMPLE_DEVICES.split("\n\n", 1)[1], encoding="utf-8")
        changed = await ctx.scan_once()
        unchanged = await ctx.scan_once()
        await settle(lambda: len(obs.messages) >= 2)
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
        return ctx, changed, unchanged, obs.messages

    ctx, changed, unchanged, messages = asyncio.run(scenario())

    assert changed is True
    assert unchanged is False
    assert [m["type"] for m in messages] == ["controllers", "padAssignment"]
    assert [c["eventPath"] for c in messages[0]["controllers"]] == ["/dev/input/event7", "/dev/input/event9"]
    assert messages[1] == {"type": "padAssignment", "pad": 0, "device": None}
    assert ctx.multiplexer.slots[0].device is None
    assert FakeReader.instances[0].stops == 1
