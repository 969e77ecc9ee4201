from .constants import (
    M_INFO,
    M_PAD_UPDATE,
    T_CONTROLLERS,
    T_FULL_STATE,
    T_PAD_ASSIGNMENT,
    T_PAD_STATES,
    T_PS4_STATUS,
    T_PS4_VERSION,
)
from .records import EVENT_SIZE, InputEvent, decode_events, encode_event

__all__ = [
    "EVENT_SIZE",
    "InputEvent",
    "decode_events",
    "encode_event",
    "M_INFO",
    "M_PAD_UPDATE",
    "T_CONTROLLERS",
    "T_FULL_STATE",
    "T_PAD_ASSIGNMENT",
    "T_PAD_STATES",
    "T_PS4_STATUS",
    "T_PS4_VERSION",
]
