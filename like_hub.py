"""
like_hub.py

Broadcast hub + small web server for browser overlays.

- GET /ws          WebSocket; server -> client only: {"type": "like_update", "likes": <int>}
- GET /api/likes   {"likes": <int or null>}
- GET /<anything>  file from WEB_STATIC_DIR if it exists, else index.html (SPA fallback);
                   with no static dir, a built-in overlay page.

Add http://127.0.0.1:8080/ as an OBS Browser Source to show the live count.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
import threading
from pathlib import Path
from typing import Callable, Optional

from aiohttp import WSMsgType, web


class LikeHub:
    """Set of connected listeners. A listener whose write fails is dropped (no retry)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners = set()
        self._latest: Optional[int] = None

    @staticmethod
    def message(count: int) -> dict:
        return {"type": "like_update", "likes": count}

    @property
    def latest(self) -> Optional[int]:
        with self._lock:
            return self._latest

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def register(self, listener) -> None:
        with self._lock:
            self._listeners.add(listener)

    async def broadcast(self, count: int) -> int:
        """Send count to every listener. Returns how many writes succeeded."""
        with self._lock:
            self._latest = count
            targets = list(self._listeners)

        payload = self.message(count)
        dead = []
        for ws in targets:
            if getattr(ws, "closed", False):
                dead.append(ws)
                continue
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            with self._lock:
                for ws in dead:
                    self._listeners.discard(ws)
            for ws in dead:
                with contextlib.suppress(Exception):
                    await ws.close()
        return len(targets) - len(dead)

    async def close_all(self) -> None:
        with self._lock:
            targets = list(self._listeners)
            self._listeners.clear()
        for ws in targets:
            with contextlib.suppress(Exception):
                await ws.close()


OVERLAY_HTML = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<meta name="viewport" content="width=device-width, initial-scale=1"/>
<title>Like Counter</title>
<style>
  html, body { margin: 0; background: transparent; }
  body { font-family: "Segoe UI", Arial, sans-serif; display: flex; align-items: center;
         justify-content: center; height: 100vh; }
  .card { padding: 18px 28px; border-radius: 16px; background: rgba(20, 20, 30, 0.85);
          color: #fff; font-size: 48px; font-weight: 700; box-shadow: 0 4px 10px rgba(0,0,0,0.3); }
  .card .label { font-size: 18px; font-weight: 400; color: #cbd5e1; display: block; }
  .bump { animation: bump 0.4s ease; }
  @keyframes bump { 50% { transform: scale(1.12); } }
  .offline { opacity: 0.5; }
</style>
</head>
<body>
  <div class="card offline" id="card"><span class="label">Likes</span><span id="likes">-</span></div>
<script>
(function(){
  var card = document.getElementById('card');
  var likes = document.getElementById('likes');

  function connect(){
    var proto = (window.location.protocol === 'https:') ? 'wss:' : 'ws:';
    var ws = new WebSocket(proto + '//' + window.location.host + '/ws');
    ws.onopen = function(){ card.classList.remove('offline'); };
    ws.onmessage = function(ev){
      var msg;
      try { msg = JSON.parse(ev.data); } catch (e) { return; }
      if (!msg || msg.type !== 'like_update') return;
      likes.textContent = Number(msg.likes).toLocaleString();
      card.classList.remove('bump'); void card.offsetWidth; card.classList.add('bump');
    };
    ws.onclose = function(){ card.classList.add('offline'); setTimeout(connect, 3000); };
  }
  connect();
})();
</script>
</body>
</html>
"""


class HubServer:
    """aiohttp server hosting the hub on its own event loop thread."""

    def __init__(
        self,
        hub: LikeHub,
        host: str = "0.0.0.0",
        port: int = 8080,
        static_dir: str = "",
        post: Optional[Callable[[str], object]] = None,
    ):
        self.hub = hub
        self.host = host
        self.port = int(port)
        self.static_dir = (static_dir or "").strip()
        self._post = post or (lambda msg: None)
        self._runner: Optional[web.AppRunner] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # Handlers
    # -----------------------------
    async def _ws_handler(self, request):
        ws = web.WebSocketResponse(heartbeat=20)
        await ws.prepare(request)

        # Send the last known count right away
        latest = self.hub.latest
        if latest is not None:
            try:
                await ws.send_json(LikeHub.message(latest))
            except Exception:
                return ws
        self.hub.register(ws)

        # Clients do not send anything meaningful; drain until they go away.
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                break
        return ws

    async def _api_likes(self, request):
        return web.json_response({"likes": self.hub.latest})

    async def _static_or_index(self, request):
        tail = request.match_info.get("tail", "")
        if self.static_dir:
            root = Path(self.static_dir).resolve()
            if tail:
                candidate = (root / tail).resolve()
                if root in candidate.parents and candidate.is_file():
                    return web.FileResponse(candidate)
            index = root / "index.html"
            if index.is_file():
                return web.FileResponse(index)
        return web.Response(text=OVERLAY_HTML, content_type="text/html", charset="utf-8")

    def make_app(self) -> web.Application:
        app = web.Application()
        app.add_routes([
            web.get("/ws", self._ws_handler),
            web.get("/api/likes", self._api_likes),
            web.get("/{tail:.*}", self._static_or_index),
        ])
        return app

    # -----------------------------
    # Lifecycle (async)
    # -----------------------------
    async def start_async(self) -> None:
        runner = web.AppRunner(self.make_app())
        await runner.setup()
        site = web.TCPSite(runner, host=self.host, port=self.port)
        await site.start()
        self._runner = runner
        self._post(f"WEB: hub at http://{self._local_ip_hint()}:{self.port}")

    async def stop_async(self) -> None:
        await self.hub.close_all()
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    # -----------------------------
    # Lifecycle (from other threads)
    # -----------------------------
    def start(self, timeout: float = 10.0) -> None:
        if self._thread is not None:
            return
        started = threading.Event()
        failure = []

        def runner():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                loop.run_until_complete(self.start_async())
            except Exception as e:
                failure.append(e)
                started.set()
                loop.close()
                return
            self._loop = loop
            loop.call_soon(started.set)
            try:
                loop.run_forever()
            finally:
                loop.run_until_complete(self.stop_async())
                self._loop = None
                loop.close()

        self._thread = threading.Thread(target=runner, name="like-hub", daemon=True)
        self._thread.start()
        if not started.wait(timeout):
            raise TimeoutError(f"web hub on {self.host}:{self.port} did not start within {timeout:g}s")
        if failure:
            self._thread = None
            raise failure[0]

    def stop(self, timeout: float = 5.0) -> None:
        loop, thread = self._loop, self._thread
        if loop is not None:
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None

    def publish(self, count: int) -> None:
        """Thread-safe broadcast; schedules the send on the hub loop and returns immediately."""
        loop = self._loop
        if loop is None or not loop.is_running():
            return
        fut = asyncio.run_coroutine_threadsafe(self.hub.broadcast(count), loop)
        fut.add_done_callback(self._report_publish)

    def _report_publish(self, fut) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            self._post(f"WEB: broadcast failed: {type(exc).__name__}: {exc}")

    @staticmethod
    def _local_ip_hint() -> str:
        # Best-effort: pick a non-loopback address
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                return s.getsockname()[0]
        except OSError:
            return "127.0.0.1"
