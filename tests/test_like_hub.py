import asyncio
import time

import pytest
from aiohttp.test_utils import TestClient, TestServer

from like_hub import OVERLAY_HTML, HubServer, LikeHub


class FakeListener:
    def __init__(self, fail=False, closed=False):
        self.fail = fail
        self.closed = closed
        self.sent = []
        self.attempts = 0
        self.close_calls = 0

    async def send_json(self, payload):
        self.attempts += 1
        if self.fail:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(payload)

    async def close(self):
        self.close_calls += 1
        self.closed = True


def test_broadcast_reaches_every_listener():
    hub = LikeHub()
    a, b = FakeListener(), FakeListener()
    hub.register(a)
    hub.register(b)

    delivered = asyncio.run(hub.broadcast(12))

    assert delivered == 2
    assert a.sent == b.sent == [{"type": "like_update", "likes": 12}]
    assert hub.latest == 12


def test_failed_listener_is_dropped_and_not_retried():
    hub = LikeHub()
    good, bad = FakeListener(), FakeListener(fail=True)
    hub.register(good)
    hub.register(bad)

    async def scenario():
        first = await hub.broadcast(1)
        second = await hub.broadcast(2)
        return first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (1, 1)
    assert bad.attempts == 1
    assert bad.close_calls == 1
    assert [m["likes"] for m in good.sent] == [1, 2]
    assert hub.listener_count() == 1


def test_closed_listener_is_pruned_without_a_write():
    hub = LikeHub()
    gone = FakeListener(closed=True)
    hub.register(gone)

    assert asyncio.run(hub.broadcast(3)) == 0
    assert gone.attempts == 0
    assert hub.listener_count() == 0


def test_broadcast_with_no_listeners_still_records_latest():
    hub = LikeHub()
    assert asyncio.run(hub.broadcast(9)) == 0
    assert hub.latest == 9


def test_close_all_empties_the_hub():
    hub = LikeHub()
    a = FakeListener()
    hub.register(a)
    asyncio.run(hub.close_all())
    assert a.close_calls == 1
    assert hub.listener_count() == 0


# -----------------------------
# HTTP / WebSocket routes
# -----------------------------

async def _wait_for_listeners(hub, n, timeout=2.0):
    deadline = time.monotonic() + timeout
    while hub.listener_count() < n and time.monotonic() < deadline:
        await asyncio.sleep(0.01)
    return hub.listener_count()


def test_ws_clients_receive_updates_and_latest_on_connect():
    hub = LikeHub()
    server = HubServer(hub)

    async def scenario():
        async with TestClient(TestServer(server.make_app())) as client:
            ws = await client.ws_connect("/ws")
            assert await _wait_for_listeners(hub, 1) == 1

            await hub.broadcast(42)
            assert await ws.receive_json(timeout=2) == {"type": "like_update", "likes": 42}

            resp = await client.get("/api/likes")
            assert resp.status == 200
            assert await resp.json() == {"likes": 42}

            late = await client.ws_connect("/ws")
            assert await late.receive_json(timeout=2) == {"type": "like_update", "likes": 42}

            await ws.close()
            await late.close()

    asyncio.run(scenario())


def test_api_likes_is_null_before_first_count():
    server = HubServer(LikeHub())

    async def scenario():
        async with TestClient(TestServer(server.make_app())) as client:
            resp = await client.get("/api/likes")
            return await resp.json()

    assert asyncio.run(scenario()) == {"likes": None}


def test_static_files_with_index_fallback(tmp_path):
    (tmp_path / "index.html").write_text("<html>overlay app</html>", encoding="utf-8")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "app.js").write_text("console.log('hi')", encoding="utf-8")
    server = HubServer(LikeHub(), static_dir=str(tmp_path))

    async def scenario():
        async with TestClient(TestServer(server.make_app())) as client:
            out = {}
            for path in ("/", "/assets/app.js", "/some/client/route"):
                resp = await client.get(path)
                out[path] = (resp.status, await resp.text())
            return out

    out = asyncio.run(scenario())
    assert out["/"] == (200, "<html>overlay app</html>")
    assert out["/assets/app.js"] == (200, "console.log('hi')")
    assert out["/some/client/route"] == (200, "<html>overlay app</html>")


def test_builtin_overlay_without_static_dir():
    server = HubServer(LikeHub())

    async def scenario():
        async with TestClient(TestServer(server.make_app())) as client:
            resp = await client.get("/anything")
            return resp.status, resp.content_type, await resp.text()

    status, ctype, body = asyncio.run(scenario())
    assert status == 200
    assert ctype == "text/html"
    assert body == OVERLAY_HTML


def test_threaded_server_publish_from_another_thread():
    hub = LikeHub()
    posted = []
    server = HubServer(hub, host="127.0.0.1", port=0, post=posted.append)

    server.start()
    try:
        server.publish(7)
        deadline = time.monotonic() + 2.0
        while hub.latest != 7 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert hub.latest == 7
        assert posted and posted[0].startswith("WEB: hub at http://")
    finally:
        server.stop()

    # after stop, publish is a no-op
    server.publish(8)
    assert hub.latest == 7


def test_start_times_out_when_the_loop_never_comes_up():
    class SlowServer(HubServer):
        async def start_async(self):
            await asyncio.sleep(0.3)

    server = SlowServer(LikeHub(), host="127.0.0.1", port=0)
    try:
        with pytest.raises(TimeoutError):
            server.start(timeout=0.05)
    finally:
        time.sleep(0.5)
        server.stop()


def test_broadcast_failure_is_posted():
    class BrokenHub(LikeHub):
        async def broadcast(self, count):
            raise RuntimeError("listener set corrupted")

    posted = []
    server = HubServer(BrokenHub(), host="127.0.0.1", port=0, post=posted.append)
    server.start()
    try:
        server.publish(1)
        deadline = time.monotonic() + 2.0
        while not any("broadcast failed" in m for m in posted) and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        server.stop()

    assert "WEB: broadcast failed: RuntimeError: listener set corrupted" in posted
