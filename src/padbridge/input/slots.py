from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

from padbridge.protocol.constants import NUM_PAD_SLOTS

from .calibration import Calibration, calibrate
from .devices import DetectedDevice
from .pad import DEFAULT_TRIGGER_THRESHOLD, PadState, PadTranslator
from .reader import EvdevReader

logger = logging.getLogger(__name__)


class PadBridgeError(Exception):
    """A request that was rejected; the message is the user-facing reason."""


class InvalidSlotError(PadBridgeError):
    pass


class SlotsFullError(PadBridgeError):
    pass


class DeviceUnavailableError(PadBridgeError):
    pass


class Reader(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


ReaderFactory = Callable[..., Reader]


@dataclass
class PadSlot:
    index: int
    device: Optional[DetectedDevice] = None
    state: PadState = field(default_factory=PadState)
    calibration: Optional[Calibration] = None
    reader: Optional[Reader] = None
    active: bool = False


class PadMultiplexer:
    """
    Owns the four pad slots. Single writer of slot state.

    - `on_frame(slot_index, state)` receives every synchronized frame
      (the console pad channel).
    - `on_assignment(slot_index, device_or_None)` is told about every
      assignment change (the UI broadcaster).
    """

    def __init__(
        self,
        *,
        on_frame: Callable[[int, PadState], None],
        on_assignment: Callable[[int, Optional[DetectedDevice]], None],
        calibrator: Callable[[DetectedDevice], Calibration] = calibrate,
        reader_factory: ReaderFactory = EvdevReader,
        trigger_threshold: int = DEFAULT_TRIGGER_THRESHOLD,
        num_slots: int = NUM_PAD_SLOTS,
    ) -> None:
        self.slots = [PadSlot(i) for i in range(num_slots)]
        self.msg_count = 0
        self._on_frame = on_frame
        self._on_assignment = on_assignment
        self._calibrator = calibrator
        self._reader_factory = reader_factory
        self.trigger_threshold = trigger_threshold

    def _check_index(self, index: int) -> PadSlot:
        if not isinstance(index, int) or not (0 <= index < len(self.slots)):
            raise InvalidSlotError(f"Invalid pad {index!r}")
        return self.slots[index]

    def slot_of(self, event_path: str) -> Optional[int]:
        for slot in self.slots:
            if slot.device is not None and slot.device.event_path == event_path:
                return slot.index
        return None

    # reader lifecycle

    def _stop_reader(self, slot: PadSlot) -> None:
        reader, slot.reader = slot.reader, None
        if reader is not None:
            reader.stop()
            logger.info("pad %d: stopped", slot.index)
        slot.active = False
        slot.state = PadState()

    def _start_reader(self, slot: PadSlot, device: DetectedDevice) -> None:
        cal = self._calibrator(device)
        slot.calibration = cal
        slot.state = PadState()
        logger.info("pad %d: %s axis layout=%s ranges=%s", slot.index, device.name, cal.layout.value, cal.source)

        translator = PadTranslator(cal.ranges, cal.layout, self.trigger_threshold)
        reader = self._reader_factory(
            device.event_path,
            translator,
            on_frame=lambda state, i=slot.index: self._frame(i, state),
            on_lost=lambda reason, i=slot.index: self._lost(i, reason),
        )
        try:
            reader.start()
        except OSError as e:
            slot.calibration = None
            raise DeviceUnavailableError(f"Cannot open {device.event_path}: {e.strerror or e}") from e
        slot.reader = reader
        slot.active = True
        logger.info("pad %d: reading %s", slot.index, device.event_path)

    def _frame(self, index: int, state: PadState) -> None:
        slot = self.slots[index]
        if not slot.active:
            return
        slot.state = state
        self.msg_count += 1
        self._on_frame(index, state)

    def _lost(self, index: int, reason: str) -> None:
        slot = self.slots[index]
        logger.warning("pad %d: stream lost (%s)", index, reason)
        self._stop_reader(slot)

    def _vacate(self, slot: PadSlot) -> None:
        had_device = slot.device is not None
        self._stop_reader(slot)
        slot.device = None
        slot.calibration = None
        if had_device:
            self._on_assignment(slot.index, None)

    # operations

    def assign(self, index: int, device: DetectedDevice) -> PadSlot:
        target = self._check_index(index)

        for slot in self.slots:
            if slot is not target and slot.device is not None and slot.device.event_path == device.event_path:
                self._vacate(slot)

        if target.device is not None:
            if target.device.event_path != device.event_path:
                self._vacate(target)
            else:
                self._stop_reader(target)

        target.device = device
        try:
            self._start_reader(target, device)
        except DeviceUnavailableError:
            target.device = None
            self._on_assignment(target.index, None)
            raise
        self._on_assignment(target.index, device)
        return target

    def assign_next_free(self, device: DetectedDevice) -> PadSlot:
        current = self.slot_of(device.event_path)
        if current is not None:
            return self.slots[current]
        for slot in self.slots:
            if slot.device is None:
                return self.assign(slot.index, device)
        raise SlotsFullError(f"All {len(self.slots)} pads are in use")

    def unassign(self, index: int) -> PadSlot:
        slot = self._check_index(index)
        self._vacate(slot)
        return slot

    def reconcile(self, devices: Iterable[DetectedDevice]) -> list[int]:
        """Force-unassign slots whose device disappeared from the latest scan."""
        present = {d.event_path for d in devices}
        vacated: list[int] = []
        for slot in self.slots:
            if slot.device is not None and slot.device.event_path not in present:
                logger.warning("pad %d: controller %s disconnected", slot.index, slot.device.event_path)
                self._vacate(slot)
                vacated.append(slot.index)
        return vacated

    def stop_all(self) -> None:
        for slot in self.slots:
            self._stop_reader(slot)
