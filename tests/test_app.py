import functools

import pytest
from conftest import FakeReader, fake_calibrator
from fastapi.testclient import TestClient

from padbridge.input.slots import PadMultiplexer
from padbridge.server.app import create_app
from padbridge.server.config import Settings
from padbridge.server.context import AppContext
from padbridge.server.rpc import RpcError


class FakeInjector:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts: list[str] = []
        self.keys: list[int] = []

    async def insert_text(self, text):
        if self.fail:
            raise RpcError("Kiosk not reachable (CDP)")
        self.texts.append(text)

    async def dispatch_key(self, key_id):
        self.keys.append(key_id)

    async def close(self):
        pass


@pytest.fixture
def settings(devices_file, tmp_path):
    return Settings(
        devices_file=str(devices_file),
        input_dir="/dev/input",
        power_supply_dir=str(tmp_path / "power_supply"),
        hid_helper_cmd="",
        scan_interval_s=60,
        tick_interval_s=60,
    )


@pytest.fixture
def injector():
    return FakeInjector()


@pytest.fixture
def client(settings, injector):
    ctx = AppContext(
        settings,
        multiplexer_factory=functools.partial(
            PadMultiplexer, calibrator=fake_calibrator, reader_factory=FakeReader
        ),
        injector=injector,
    )
    with TestClient(create_app(settings, ctx)) as c:
        yield c


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_panel_page(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "z-ps4" in r.text


def test_status_shape(client):
    body = client.get("/api/status").json()
    assert body["type"] == "fullState"
    assert body["ps4"] == {"host": "z-ps4", "port": 4263, "connected": False, "version": ""}
    assert [c["eventPath"] for c in body["controllers"]] == [
        "/dev/input/event5",
        "/dev/input/event7",
        "/dev/input/event9",
    ]
    assert [p["index"] for p in body["pads"]] == [0, 1, 2, 3]
    assert body["pads"][0]["device"] is None
    assert body["pads"][0]["state"]["lx"] == 128
    assert body["msgCount"] == 0


def test_assign_and_unassign(client):
    r = client.post("/api/assign", json={"eventPath": "/dev/input/event7", "padIndex": 1})
    assert r.json() == {"ok": True, "padIndex": 1}

    pads = client.get("/api/status").json()["pads"]
    assert pads[1]["device"]["eventPath"] == "/dev/input/event7"
    assert pads[1]["active"] is True

    diag = client.get("/api/diagnostics").json()
    assert diag["pads"][1]["layout"] == "gas_brake"
    assert diag["pads"][1]["ranges"] == "fallback"
    assert diag["hidHelper"] is False

    assert client.post("/api/unassign", json={"padIndex": 1}).json() == {"ok": True}
    assert client.post("/api/unassign", json={"padIndex": 1}).json() == {"ok": True}
    assert client.get("/api/status").json()["pads"][1]["device"] is None


def test_assign_without_index_takes_lowest_free(client):
    client.post("/api/assign", json={"eventPath": "/dev/input/event9", "padIndex": 0})
    r = client.post("/api/assign", json={"eventPath": "/dev/input/event5"})
    assert r.json() == {"ok": True, "padIndex": 1}


def test_assign_rejections(client):
    r = client.post("/api/assign", json={"eventPath": "/dev/input/event5", "padIndex": 4})
    assert r.status_code == 400
    assert r.json()["ok"] is False

    r = client.post("/api/assign", json={"eventPath": "/dev/input/event42", "padIndex": 0})
    assert r.status_code == 404
    assert r.json() == {"ok": False, "error": "Controller not found"}

    FakeReader.unavailable.add("/dev/input/event5")
    r = client.post("/api/assign", json={"eventPath": "/dev/input/event5", "padIndex": 0})
    assert r.status_code == 409

    r = client.post("/api/unassign", json={"padIndex": -1})
    assert r.status_code == 400


def test_connect_requires_host(client):
    r = client.post("/api/connect", json={"host": "  "})
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "Missing host"}


def test_disconnect_without_console(client):
    assert client.post("/api/disconnect").json() == {"ok": True}
    assert client.get("/api/status").json()["ps4"]["host"] == ""


def test_ws_sends_full_state_first(client):
    with client.websocket_connect("/ws") as ws:
        msg = ws.receive_json()
    assert msg["type"] == "fullState"
    assert len(msg["pads"]) == 4


def test_ws_receives_assignment_push(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        client.post("/api/assign", json={"eventPath": "/dev/input/event5", "padIndex": 2})
        msg = ws.receive_json()
    assert msg["type"] == "padAssignment"
    assert msg["pad"] == 2
    assert msg["device"]["label"] == "PlayStation"


def test_input_socket_rejects_malformed_frames(client):
    with client.websocket_connect("/ws/input") as ws:
        ws.send_bytes(b"\x09\x00")
        assert ws.receive_json()["type"] == "error"
        ws.send_text("hello")
        assert ws.receive_json()["type"] == "error"


def test_input_socket_acks_keystrokes(client, injector):
    with client.websocket_connect("/ws/input") as ws:
        ws.send_bytes(b"\x06\x01")
        assert ws.receive_json() == {"type": "ack", "ok": True}
        ws.send_bytes(b"\x05hi")
        assert ws.receive_json() == {"type": "ack", "ok": True}
    assert injector.keys == [1]
    assert injector.texts == ["hi"]


def test_input_socket_reports_injection_failure(settings):
    ctx = AppContext(
        settings,
        multiplexer_factory=functools.partial(PadMultiplexer, reader_factory=FakeReader),
        injector=FakeInjector(fail=True),
    )
    with TestClient(create_app(settings, ctx)) as c:
        with c.websocket_connect("/ws/input") as ws:
            ws.send_bytes(b"\x05hi")
            reply = ws.receive_json()
    assert reply["type"] == "ack"
    assert reply["ok"] is False
    assert "not reachable" in reply["error"]


def test_default_app_is_built_on_first_access():
    import padbridge.server.app as app_module

    assert "app" not in vars(app_module)
    default = app_module.app
    assert default is app_module.app
    assert isinstance(default.state.ctx, AppContext)
