import json
import pathlib
import sys
import threading
import time

from fastapi.testclient import TestClient

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from relay.app_factory import create_app
from relay.settings import settings

PRINCIPAL = {"X-MS-CLIENT-PRINCIPAL-NAME": "alice"}


def make_app(**overrides):
    return create_app(settings.model_copy(update=overrides))


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.01)


def parse_events(body: str):
    frames = [f for f in body.split("\n\n") if f]
    return [json.loads(f[len("data: "):]) for f in frames]


def test_end_to_end_only_connected_listener_receives():
    app = make_app(BROADCAST_CAPACITY=16)
    with TestClient(app) as client:
        hub = app.state.hub
        early = client.post("/message", data={"room": "lobby", "message": "before"}, headers=PRINCIPAL)
        assert early.json() == {"ok": True, "receivers": 0}

        def drive():
            wait_for(lambda: hub.subscriber_count == 1)
            resp = client.post("/message", data={"room": "lobby", "message": "hi"}, headers=PRINCIPAL)
            assert resp.json() == {"ok": True, "receivers": 1}
            time.sleep(0.2)
            client.portal.call(_trigger, app.state.shutdown)

        driver = threading.Thread(target=drive)
        driver.start()
        resp = client.get("/events")
        driver.join()

        assert resp.headers["content-type"].startswith("text/event-stream")
        assert parse_events(resp.text) == [{"room": "lobby", "username": "alice", "message": "hi"}]
        assert hub.subscriber_count == 0


async def _trigger(shutdown):
    shutdown.trigger()


def test_post_without_principal_uses_guest_name():
    app = make_app()
    with TestClient(app) as client:
        sub = app.state.hub.subscribe()
        resp = client.post("/message", data={"room": "lobby", "message": "yo"})
        assert resp.status_code == 200
        assert resp.json()["receivers"] == 1

        async def next_message():
            return await sub.recv()

        received = client.portal.call(next_message)
        assert received.username == "guest"
        assert received.message == "yo"
        sub.close()


def test_room_must_be_shorter_than_thirty_characters():
    app = make_app()
    with TestClient(app) as client:
        ok = client.post("/message", data={"room": "r" * 29, "message": "x"})
        assert ok.status_code == 200
        too_long = client.post("/message", data={"room": "r" * 30, "message": "x"})
        assert too_long.status_code == 422


def test_missing_form_field_is_rejected():
    app = make_app()
    with TestClient(app) as client:
        resp = client.post("/message", data={"room": "lobby"})
        assert resp.status_code == 422


def test_empty_room_and_message_are_relayed():
    app = make_app()
    with TestClient(app) as client:
        sub = app.state.hub.subscribe()
        blank_message = client.post("/message", data={"room": "lobby", "message": ""})
        blank_room = client.post("/message", data={"room": "", "message": "hi"})
        assert blank_message.status_code == 200
        assert blank_room.status_code == 200

        async def next_two():
            return [await sub.recv(), await sub.recv()]

        first, second = client.portal.call(next_two)
        assert (first.room, first.message) == ("lobby", "")
        assert (second.room, second.message) == ("", "hi")
        sub.close()


def test_empty_principal_header_is_kept_as_name():
    app = make_app()
    with TestClient(app) as client:
        assert client.get("/user", headers={"X-MS-CLIENT-PRINCIPAL-NAME": ""}).text == ""
        sub = app.state.hub.subscribe()
        client.post("/message", data={"room": "lobby", "message": "x"}, headers={"X-MS-CLIENT-PRINCIPAL-NAME": ""})

        async def next_message():
            return await sub.recv()

        assert client.portal.call(next_message).username == ""
        sub.close()


def test_user_query_reads_principal_header():
    app = make_app()
    with TestClient(app) as client:
        assert client.get("/user", headers=PRINCIPAL).text == "alice"
        anon = client.get("/user")
        assert anon.text == "anonymous"
        assert anon.headers["content-type"].startswith("text/plain")


def test_principal_header_is_configurable():
    app = make_app(PRINCIPAL_HEADER="X-Forwarded-User")
    with TestClient(app) as client:
        assert client.get("/user", headers={"X-Forwarded-User": "bob"}).text == "bob"
        assert client.get("/user", headers=PRINCIPAL).text == "anonymous"


def test_db_probe_lists_tables(tmp_path):
    app = make_app(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}")
    with TestClient(app) as client:

        async def create_tables():
            async with app.state.engine.begin() as conn:
                await conn.exec_driver_sql("CREATE TABLE accounts (id INTEGER PRIMARY KEY)")
                await conn.exec_driver_sql("CREATE TABLE rooms (id INTEGER PRIMARY KEY)")

        client.portal.call(create_tables)
        assert client.get("/db").text == "accounts,rooms"


def test_db_probe_failure_returns_empty_body(tmp_path):
    missing = tmp_path / "no" / "such" / "dir" / "relay.db"
    app = make_app(DATABASE_URL=f"sqlite+aiosqlite:///{missing}")
    with TestClient(app) as client:
        resp = client.get("/db")
        assert resp.status_code == 200
        assert resp.text == ""


def test_index_page_is_served():
    app = make_app()
    with TestClient(app) as client:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "EventSource" in resp.text


def test_lifespan_exit_closes_hub_and_signals_shutdown():
    app = make_app()
    with TestClient(app):
        hub = app.state.hub
        assert not hub.closed
    assert hub.closed
    assert app.state.shutdown.is_triggered
