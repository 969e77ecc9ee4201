from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, JSONResponse

from padbridge.input.slots import DeviceUnavailableError, PadBridgeError
from padbridge.protocol.constants import T_ACK, T_ERROR
from padbridge.protocol.control import (
    Click,
    ControlFrameError,
    InsertText,
    MouseMove,
    RawKey,
    Scroll,
    SpecialKey,
    decode_control_frame,
)
from padbridge.protocol.messages import AssignRequest, ConnectRequest, UnassignRequest
from padbridge.protocol.records import EVENT_SIZE

from .config import Settings, get_settings
from .context import AppContext, UnknownControllerError
from .observers import encode
from .panel_page import render_panel_html
from .rpc import RpcError

logger = logging.getLogger(__name__)


def _fail(error: str, status: int = 400) -> JSONResponse:
    return JSONResponse({"ok": False, "error": error}, status_code=status)


def _rejected(e: PadBridgeError) -> JSONResponse:
    if isinstance(e, UnknownControllerError):
        return _fail(str(e), 404)
    if isinstance(e, DeviceUnavailableError):
        return _fail(str(e), 409)
    return _fail(str(e), 400)


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    settings = settings or get_settings()
    ctx = context or AppContext(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await ctx.start()
        try:
            yield
        finally:
            await ctx.stop()

    app = FastAPI(title="padbridge", lifespan=lifespan)
    app.state.ctx = ctx

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/", response_class=HTMLResponse)
    def panel():
        return HTMLResponse(render_panel_html(ctx.console_host or settings.console_host, ctx.console_port))

    @app.get("/api/status")
    async def status():
        return ctx.full_state().model_dump(mode="json")

    @app.get("/api/diagnostics")
    async def diagnostics():
        return ctx.diagnostics()

    @app.post("/api/connect")
    async def connect(body: ConnectRequest):
        host = body.host.strip()
        if not host:
            return _fail("Missing host")
        await ctx.connect_console(host, body.port)
        return {"ok": True}

    @app.post("/api/disconnect")
    async def disconnect():
        await ctx.disconnect_console()
        return {"ok": True}

    @app.post("/api/assign")
    async def assign(body: AssignRequest):
        try:
            index = ctx.assign(body.eventPath, body.padIndex)
        except PadBridgeError as e:
            return _rejected(e)
        return {"ok": True, "padIndex": index}

    @app.post("/api/unassign")
    async def unassign(body: UnassignRequest):
        try:
            ctx.unassign(body.padIndex)
        except PadBridgeError as e:
            return _rejected(e)
        return {"ok": True}

    @app.websocket("/ws")
    async def ws(ws: WebSocket):
        await ws.accept()
        ctx.broadcaster.add(ws)
        try:
            await ws.send_text(encode(ctx.full_state()))
            while True:
                # nothing is expected from the panel; keep the socket drained
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except WebSocketDisconnect:
            pass
        finally:
            ctx.broadcaster.discard(ws)

    @app.websocket("/ws/input")
    async def ws_input(ws: WebSocket):
        await ws.accept()
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                data = message.get("bytes")
                if data is None:
                    await ws.send_text(encode({"type": T_ERROR, "error": "expected a binary frame"}))
                    continue
                if settings.debug_log_msgs:
                    logger.debug("[ws:input] %s", data[:EVENT_SIZE].hex())
                try:
                    cmd = decode_control_frame(data)
                except ControlFrameError as e:
                    if settings.debug_log_msgs:
                        logger.debug("[ws:input] rejected frame: %s", e)
                    await ws.send_text(encode({"type": T_ERROR, "error": str(e)}))
                    continue

                if isinstance(cmd, MouseMove):
                    ctx.hid.move(cmd.dx, cmd.dy)
                elif isinstance(cmd, Click):
                    ctx.hid.click(cmd.button, cmd.pressed)
                elif isinstance(cmd, Scroll):
                    ctx.hid.scroll(cmd.delta)
                elif isinstance(cmd, RawKey):
                    ctx.hid.key(cmd.keycode, cmd.pressed)
                elif isinstance(cmd, (InsertText, SpecialKey)):
                    try:
                        if isinstance(cmd, InsertText):
                            await ctx.injector.insert_text(cmd.text)
                        else:
                            await ctx.injector.dispatch_key(cmd.key_id)
                    except RpcError as e:
                        await ws.send_text(encode({"type": T_ACK, "ok": False, "error": str(e)}))
                    else:
                        await ws.send_text(encode({"type": T_ACK, "ok": True}))
        except WebSocketDisconnect:
            pass

    return app


@lru_cache(maxsize=1)
def _default_app() -> FastAPI:
    return create_app()


def __getattr__(name: str):
    # `uvicorn padbridge.server.app:app` builds the default app on first access
    if name == "app":
        return _default_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
