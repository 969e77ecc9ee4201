from __future__ import annotations

import shlex
import sys
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config (kiosk).

    - Loaded from environment variables (PADBRIDGE_*)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PADBRIDGE_", extra="ignore")

    # Panel
    ui_host: str = "0.0.0.0"
    ui_port: int = 3458

    # Console target shown in the panel until the user connects elsewhere
    console_host: str = "z-ps4"
    console_port: int = 4263
    reconnect_delay_s: float = 3.0
    info_timeout_s: float = 2.0

    # Input devices
    devices_file: str = "/proc/bus/input/devices"
    input_dir: str = "/dev/input"
    power_supply_dir: str = "/sys/class/power_supply"
    scan_interval_s: float = 2.0

    # Pad state
    tick_interval_s: float = 0.1
    trigger_threshold: int = 10

    # Remote input (keystrokes via DevTools, mouse/keys via the uinput helper)
    cdp_url: str = "http://127.0.0.1:9222"
    cdp_timeout_s: float = 5.0
    hid_helper_cmd: str = f"{shlex.quote(sys.executable)} -m padbridge.tools.uinput_helper"

    # Debugging
    log_level: str = "INFO"
    debug_log_msgs: bool = False

    def hid_helper_argv(self) -> list[str]:
        return shlex.split(self.hid_helper_cmd)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
