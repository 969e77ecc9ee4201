# Message type constants (stringly-typed protocol; canonical list lives here)

# server -> UI observers
T_FULL_STATE = "fullState"
T_CONTROLLERS = "controllers"
T_PAD_STATES = "padStates"
T_PAD_ASSIGNMENT = "padAssignment"
T_PS4_STATUS = "ps4Status"
T_PS4_VERSION = "ps4Version"

# server -> remote-input client
T_ACK = "ack"
T_ERROR = "error"

# console RPC methods
M_PAD_UPDATE = "u"
M_INFO = "info"

# browser -> server binary control frames (leading byte)
OP_MOUSE_MOVE = 0x01
OP_CLICK = 0x02
OP_SCROLL = 0x03
OP_KEY = 0x04
OP_TEXT = 0x05
OP_SPECIAL_KEY = 0x06

NUM_PAD_SLOTS = 4
