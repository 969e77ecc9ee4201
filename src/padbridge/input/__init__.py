from .devices import DetectedDevice, scan
from .pad import Button, PadState
from .slots import PadMultiplexer

__all__ = ["Button", "DetectedDevice", "PadMultiplexer", "PadState", "scan"]
