from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

# Field names are the wire names (camelCase), the browser panel reads them as-is.


class PadStateMsg(BaseModel):
    buttons: int
    lx: int
    ly: int
    rx: int
    ry: int
    l2: int
    r2: int


class Battery(BaseModel):
    level: int
    status: str


class ControllerMsg(BaseModel):
    name: str
    eventPath: str
    vendor: str
    product: str
    uniq: str
    bus: str
    label: str
    connectionType: Literal["bluetooth", "usb", "other"]
    inputType: str
    icon: str
    battery: Optional[Battery] = None


class PadSlotMsg(BaseModel):
    index: int
    device: Optional[ControllerMsg] = None
    active: bool
    state: PadStateMsg


class PadTickMsg(BaseModel):
    index: int
    active: bool
    state: Optional[PadStateMsg] = None


class ConsoleMsg(BaseModel):
    host: str
    port: int
    connected: bool
    version: str = ""


class FullState(BaseModel):
    type: Literal["fullState"] = "fullState"
    ps4: ConsoleMsg
    controllers: list[ControllerMsg]
    pads: list[PadSlotMsg]
    msgCount: int


class Controllers(BaseModel):
    type: Literal["controllers"] = "controllers"
    controllers: list[ControllerMsg]


class PadStates(BaseModel):
    type: Literal["padStates"] = "padStates"
    pads: list[PadTickMsg]
    msgCount: int


class Ps4Status(BaseModel):
    type: Literal["ps4Status"] = "ps4Status"
    connected: bool
    host: Optional[str] = None
    port: Optional[int] = None


class Ps4Version(BaseModel):
    type: Literal["ps4Version"] = "ps4Version"
    version: str


class PadAssignment(BaseModel):
    type: Literal["padAssignment"] = "padAssignment"
    pad: int
    device: Optional[ControllerMsg] = None


# REST request bodies


class ConnectRequest(BaseModel):
    host: str = ""
    port: Optional[int] = Field(default=None, ge=1, le=65535)


class AssignRequest(BaseModel):
    eventPath: str
    # omitted -> lowest empty slot
    padIndex: Optional[int] = None


class UnassignRequest(BaseModel):
    padIndex: int
