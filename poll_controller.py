"""
poll_controller.py

Poll controller: fetch -> compare -> push/broadcast -> wait, on one worker thread.

States: IDLE -> RUNNING -> STOPPING -> IDLE

- Stop is cooperative. The wait between iterations wakes up on stop; a fetch or
  OBS call already in flight is allowed to finish, but a count fetched after
  stop was requested is discarded (never pushed).
- Fetch errors never end the session: the error is reported and the next
  attempt waits retry_seconds instead of interval_seconds.
- OBS connection failure at session start ends the session (back to IDLE).
- The worker never touches UI widgets. Everything the UI needs arrives as a
  PollEvent on `events` (a queue.Queue), drained on the UI thread.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from monitor_errors import ConfigError, FetchError, SessionActiveError, SinkConnectionError, UpdateError
from obs_sink import ObsSink, SinkTarget

IDLE = "IDLE"
RUNNING = "RUNNING"
STOPPING = "STOPPING"


@dataclass(frozen=True)
class PollEvent:
    kind: str  # "state" | "count" | "status" | "error"
    message: str = ""
    count: Optional[int] = None
    state: str = ""


class PollSession:
    """One polling run. Stop flag and last observed count share one lock."""

    def __init__(
        self,
        video_id: str,
        interval_seconds: float = 15.0,
        retry_seconds: float = 30.0,
        last_observed: Optional[int] = None,
    ):
        self.video_id = video_id
        self.interval_seconds = float(interval_seconds)
        self.retry_seconds = float(retry_seconds)

        self._lock = threading.Lock()
        self._stop = False
        self._last_observed = last_observed
        self._wake = threading.Event()

        # counters (written by the worker only)
        self.fetches = 0
        self.fetch_errors = 0
        self.pushes = 0
        self.push_errors = 0

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop

    @property
    def last_observed(self) -> Optional[int]:
        with self._lock:
            return self._last_observed

    def request_stop(self) -> None:
        with self._lock:
            self._stop = True
        self._wake.set()

    def observe(self, count: int) -> bool:
        """Record count. True only if it differs from the last one and no stop was requested."""
        with self._lock:
            if self._stop:
                return False
            if count == self._last_observed:
                return False
            self._last_observed = count
            return True

    def wait(self, seconds: float) -> bool:
        """Sleep up to seconds; returns early (True) once stop is requested."""
        self._wake.wait(max(0.0, seconds))
        return self.stop_requested


class PollController:
    def __init__(
        self,
        fetcher,
        sink_factory: Callable[[SinkTarget], ObsSink] = ObsSink,
        hub=None,
        events: Optional[queue.Queue] = None,
        post: Optional[Callable[[str], object]] = None,
        sleeper: Callable[[PollSession, float], bool] = PollSession.wait,
    ):
        self.fetcher = fetcher
        self.hub = hub  # anything with publish(count); see like_hub.HubServer
        self.events: queue.Queue = events if events is not None else queue.Queue()
        self._sink_factory = sink_factory
        self._post = post or (lambda msg: None)
        self._sleep = sleeper

        self._lock = threading.Lock()
        self._state = IDLE
        self._session: Optional[PollSession] = None
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # State
    # -----------------------------
    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def session(self) -> Optional[PollSession]:
        with self._lock:
            return self._session

    def is_running(self) -> bool:
        return self.state != IDLE

    def _emit(self, event: PollEvent) -> None:
        self.events.put(event)
        if event.message:
            self._post(event.message)

    # -----------------------------
    # Start / stop
    # -----------------------------
    def _begin(
        self,
        api_key: str,
        video_id: str,
        target: SinkTarget,
        interval_seconds: float,
        retry_seconds: float,
        last_observed: Optional[int],
    ) -> PollSession:
        api_key = (api_key or "").strip()
        video_id = (video_id or "").strip()
        if not api_key or not video_id:
            raise ConfigError("You must provide both a YouTube API key and Video ID.")
        target.validate()
        if interval_seconds <= 0 or retry_seconds <= 0:
            raise ConfigError("poll interval and retry delay must be positive")

        with self._lock:
            if self._state != IDLE:
                raise SessionActiveError(f"poll session already {self._state.lower()}")
            session = PollSession(video_id, interval_seconds, retry_seconds, last_observed)
            self._session = session
            self._state = RUNNING
            self._emit(PollEvent("state", f"Polling {video_id} every {session.interval_seconds:g}s", state=RUNNING))
        return session

    def start(
        self,
        api_key: str,
        video_id: str,
        target: SinkTarget,
        interval_seconds: float = 15.0,
        retry_seconds: float = 30.0,
        last_observed: Optional[int] = None,
    ) -> PollSession:
        """Validate inputs and run the loop on a new worker thread."""
        session = self._begin(api_key, video_id, target, interval_seconds, retry_seconds, last_observed)
        thread = threading.Thread(
            target=self._runner, args=(session, api_key.strip(), target), name="like-poll", daemon=True
        )
        with self._lock:
            self._thread = thread
        thread.start()
        return session

    def run_session(
        self,
        api_key: str,
        video_id: str,
        target: SinkTarget,
        interval_seconds: float = 15.0,
        retry_seconds: float = 30.0,
        last_observed: Optional[int] = None,
    ) -> PollSession:
        """Same as start(), but runs the loop in the calling thread until it ends."""
        session = self._begin(api_key, video_id, target, interval_seconds, retry_seconds, last_observed)
        self._runner(session, api_key.strip(), target)
        return session

    def stop(self) -> bool:
        """Request a cooperative stop. False if nothing was running."""
        with self._lock:
            session = self._session
            if session is None or self._state != RUNNING:
                return False
            self._state = STOPPING
            session.request_stop()
            self._emit(PollEvent("state", "Stopping...", state=STOPPING))
        return True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread. True once the controller is idle."""
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        return self.state == IDLE

    def _finish(self, session: PollSession) -> None:
        with self._lock:
            if self._session is not session:
                return
            self._session = None
            self._state = IDLE
            self._emit(PollEvent("state", "Stopped", state=IDLE))

    # -----------------------------
    # Loop
    # -----------------------------
    def _runner(self, session: PollSession, api_key: str, target: SinkTarget) -> None:
        try:
            self._loop(session, api_key, target)
        except Exception as e:
            self._emit(PollEvent("error", f"Poll loop crashed: {type(e).__name__}: {e}"))
        finally:
            self._finish(session)

    def _loop(self, session: PollSession, api_key: str, target: SinkTarget) -> None:
        sink = self._sink_factory(target)
        try:
            sink.connect()
        except SinkConnectionError as e:
            self._emit(PollEvent("error", f"❌ OBS connection failed: {e}"))
            return

        try:
            self._emit(PollEvent("status", f"OBS connected ({target.host}:{target.port}) -> {target.input_name}"))
            while not session.stop_requested:
                try:
                    snap = self.fetcher.fetch(api_key, session.video_id)
                except FetchError as e:
                    session.fetch_errors += 1
                    self._emit(PollEvent("error", f"❌ YouTube error: {e}"))
                    self._sleep(session, session.retry_seconds)
                    continue
                session.fetches += 1

                if session.observe(snap.count):
                    self._deliver(session, sink, snap.count)

                self._sleep(session, session.interval_seconds)
        finally:
            sink.disconnect()

    def _deliver(self, session: PollSession, sink: ObsSink, count: int) -> None:
        self._emit(PollEvent("count", f"👍 Likes: {count}", count=count))
        try:
            sink.push(count)
            session.pushes += 1
        except UpdateError as e:
            session.push_errors += 1
            self._emit(PollEvent("error", f"OBS update error: {e}"))
        if self.hub is not None:
            self.hub.publish(count)
