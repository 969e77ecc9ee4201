from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from padbridge.input import devices as devmod
from padbridge.input.devices import DetectedDevice
from padbridge.input.pad import PadState
from padbridge.input.slots import PadMultiplexer, PadBridgeError
from padbridge.protocol import messages as m

from .config import Settings
from .console import ConsoleClient
from .hid import SyntheticHid
from .keystrokes import KeystrokeInjector
from .observers import Broadcaster

logger = logging.getLogger(__name__)


class UnknownControllerError(PadBridgeError):
    pass


class AppContext:
    """
    Process-wide state of the bridge: the detected controllers, the four pad
    slots, the console connection and the panel observers. Each resource has a
    single writer (multiplexer for slots, ConsoleClient for console status).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        multiplexer_factory: Callable[..., PadMultiplexer] = PadMultiplexer,
        console_factory: Callable[..., ConsoleClient] = ConsoleClient,
        hid: Optional[SyntheticHid] = None,
        injector: Optional[KeystrokeInjector] = None,
    ) -> None:
        self.settings = settings
        self.broadcaster = Broadcaster()
        self.controllers: list[DetectedDevice] = []
        self.multiplexer = multiplexer_factory(
            on_frame=self._forward_frame,
            on_assignment=self._assignment_changed,
            trigger_threshold=settings.trigger_threshold,
        )
        self.console: Optional[ConsoleClient] = None
        self.console_host = settings.console_host
        self.console_port = settings.console_port
        self._console_factory = console_factory
        self.hid = hid if hid is not None else SyntheticHid(settings.hid_helper_argv())
        self.injector = injector or KeystrokeInjector(settings.cdp_url, timeout_s=settings.cdp_timeout_s)
        self._tasks: list[asyncio.Task] = []

    # serialization

    def serialize(self, dev: DetectedDevice) -> dict:
        return devmod.serialize_device(dev, self.settings.power_supply_dir)

    def full_state(self) -> m.FullState:
        return m.FullState(
            ps4=m.ConsoleMsg(
                host=self.console_host,
                port=self.console_port,
                connected=self.console_connected,
                version=self.console.version if self.console else "",
            ),
            controllers=[self.serialize(c) for c in self.controllers],
            pads=[
                m.PadSlotMsg(
                    index=s.index,
                    device=self.serialize(s.device) if s.device else None,
                    active=s.active,
                    state=s.state.to_dict(),
                )
                for s in self.multiplexer.slots
            ],
            msgCount=self.multiplexer.msg_count,
        )

    def pad_states(self) -> m.PadStates:
        return m.PadStates(
            pads=[
                m.PadTickMsg(index=s.index, active=s.active, state=s.state.to_dict() if s.active else None)
                for s in self.multiplexer.slots
            ],
            msgCount=self.multiplexer.msg_count,
        )

    def diagnostics(self) -> dict[str, Any]:
        return {
            "controllers": len(self.controllers),
            "pads": [
                {
                    "index": s.index,
                    "device": s.device.event_path if s.device else None,
                    "name": s.device.name if s.device else None,
                    "active": s.active,
                    "layout": s.calibration.layout.value if s.calibration else None,
                    "ranges": s.calibration.source if s.calibration else None,
                }
                for s in self.multiplexer.slots
            ],
            "console": {
                "host": self.console_host,
                "port": self.console_port,
                "connected": self.console_connected,
                "version": self.console.version if self.console else "",
                "attempts": self.console.attempts if self.console else 0,
            },
            "msgCount": self.multiplexer.msg_count,
            "hidHelper": self.hid.running,
            "observers": len(self.broadcaster.clients),
        }

    @property
    def console_connected(self) -> bool:
        return bool(self.console and self.console.connected)

    # multiplexer hooks

    def _forward_frame(self, index: int, state: PadState) -> None:
        if self.console is not None:
            self.console.send_pad_update(index, state)

    def _assignment_changed(self, index: int, device: Optional[DetectedDevice]) -> None:
        self.broadcaster.publish(m.PadAssignment(pad=index, device=self.serialize(device) if device else None))

    # controllers

    def find_controller(self, event_path: str) -> DetectedDevice:
        for dev in self.controllers:
            if dev.event_path == event_path:
                return dev
        raise UnknownControllerError("Controller not found")

    def assign(self, event_path: str, pad_index: Optional[int]) -> int:
        dev = self.find_controller(event_path)
        if pad_index is None:
            return self.multiplexer.assign_next_free(dev).index
        return self.multiplexer.assign(pad_index, dev).index

    def unassign(self, pad_index: int) -> None:
        self.multiplexer.unassign(pad_index)

    async def scan_once(self) -> bool:
        """One enumerator pass; returns True if the set of event paths changed."""
        curr = await asyncio.to_thread(devmod.scan, self.settings.devices_file, self.settings.input_dir)
        added, removed = devmod.diff_paths(self.controllers, curr)
        self.controllers = curr
        if not (added or removed):
            return False
        logger.info("controllers: %d detected (+%d -%d)", len(curr), len(added), len(removed))
        self.broadcaster.publish(m.Controllers(controllers=[self.serialize(c) for c in curr]))
        self.multiplexer.reconcile(curr)
        return True

    # console

    async def connect_console(self, host: str, port: Optional[int]) -> None:
        if self.console is not None:
            await self.console.disconnect()
        self.console_host = host
        self.console_port = port or self.settings.console_port
        self.console = self._console_factory(
            self.console_host,
            self.console_port,
            on_status=self.broadcaster.publish,
            reconnect_delay_s=self.settings.reconnect_delay_s,
            info_timeout_s=self.settings.info_timeout_s,
        )
        self.console.start()

    async def disconnect_console(self) -> None:
        console, self.console = self.console, None
        self.console_host = ""
        if console is not None:
            await console.disconnect()
        else:
            self.broadcaster.publish(m.Ps4Status(connected=False))

    # background loops

    async def _scan_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.scan_interval_s)
            await self.scan_once()

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.tick_interval_s)
            self.broadcaster.publish(self.pad_states())

    async def start(self) -> None:
        self.controllers = await asyncio.to_thread(
            devmod.scan, self.settings.devices_file, self.settings.input_dir
        )
        logger.info("found %d controller(s)", len(self.controllers))
        await self.hid.start()
        for coro in (self.broadcaster.run(), self._scan_loop(), self._tick_loop()):
            self._tasks.append(asyncio.create_task(coro))

    async def stop(self) -> None:
        logger.info("shutting down")
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        self.multiplexer.stop_all()
        if self.console is not None:
            await self.console.disconnect()
            self.console = None
        await self.injector.close()
        await self.hid.close()
