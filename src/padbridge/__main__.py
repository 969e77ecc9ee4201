from __future__ import annotations

import argparse
import logging
import socket
import sys
from typing import Optional

from padbridge.input.devices import controller_label, scan
from padbridge.server.config import get_settings


def list_controllers(devices_file: str, input_dir: str) -> int:
    found = scan(devices_file, input_dir)
    if not found:
        print("No controllers detected.")
        return 0
    for i, d in enumerate(found):
        conn = "BT" if d.bus == "0005" else "USB"
        print(f"[{i}] {d.name} ({controller_label(d)}) {d.uniq or 'wired'} [{conn}] {d.event_path}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    ap = argparse.ArgumentParser(
        prog="padbridge",
        description="Forward local game controllers to a console over the RemotePad WebSocket RPC.",
    )
    ap.add_argument("--ui-port", type=int, default=settings.ui_port, help=f"Web UI port (default: {settings.ui_port})")
    ap.add_argument("--list", action="store_true", help="List detected controllers and exit")
    args = ap.parse_args(argv)

    if args.list:
        return list_controllers(settings.devices_file, settings.input_dir)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from padbridge.server.app import create_app

    settings.ui_port = args.ui_port
    logging.getLogger("padbridge").info("RemotePad Bridge UI: http://%s:%d", socket.gethostname(), args.ui_port)
    uvicorn.run(create_app(settings), host=settings.ui_host, port=args.ui_port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
