"""
run_log.py

Run log for the like monitor: timestamped lines kept in memory for the UI log
pane and appended to a per-run file (<prefix>_run_<timestamp>.log).
Old run files beyond the retention count are removed at startup.
"""

from __future__ import annotations

import datetime as dt
import glob
import os
import threading
from collections import deque
from typing import Callable, List, Optional


class RunLog:
    def __init__(
        self,
        log_dir: str = "",
        prefix: str = "like_monitor",
        to_file: bool = True,
        retention: int = 30,
        buffer_lines: int = 400,
    ):
        self.log_dir = (log_dir or "").strip() or os.path.dirname(os.path.abspath(__file__))
        self.prefix = prefix or "like_monitor"
        self.to_file = to_file
        self.retention = retention
        self.path = ""

        self._lock = threading.Lock()
        self._buf = deque(maxlen=max(1, int(buffer_lines)))
        self._subscribers: List[Callable[[str], None]] = []
        self._fp = None

    @classmethod
    def from_config(cls, cfg) -> "RunLog":
        return cls(
            log_dir=cfg.LOG_DIR,
            prefix=cfg.LOG_RUN_FILE_PREFIX,
            to_file=cfg.LOG_TO_FILE_ENABLED,
            retention=cfg.LOG_RETENTION_COUNT,
            buffer_lines=cfg.LOG_BUFFER_LINES,
        )

    # -----------------------------
    # File handling
    # -----------------------------
    def open(self) -> Optional[str]:
        """Create the run file and prune old ones. Returns the path, or None when file logging is off."""
        if not self.to_file:
            return None
        os.makedirs(self.log_dir, exist_ok=True)
        ts = dt.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        self.path = os.path.join(self.log_dir, f"{self.prefix}_run_{ts}.log")
        self._fp = open(self.path, "a", encoding="utf-8", buffering=1)
        self._fp.write(f"=== Like monitor run started {ts} ===\n")
        self.cleanup_old_logs()
        return self.path

    def close(self) -> None:
        with self._lock:
            fp, self._fp = self._fp, None
        if fp is None:
            return
        ts = dt.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        try:
            fp.write(f"=== Like monitor run ended {ts} ===\n")
        finally:
            fp.close()

    def cleanup_old_logs(self) -> int:
        """Keep only the most recent run files. Returns how many were removed."""
        if self.retention <= 0:
            return 0
        files = glob.glob(os.path.join(self.log_dir, f"{self.prefix}_run_*.log"))
        if len(files) <= self.retention:
            return 0
        # oldest first
        files.sort(key=os.path.getmtime)
        removed = 0
        for fpath in files[:-self.retention]:
            if fpath == self.path:
                continue
            try:
                os.remove(fpath)
                removed += 1
            except OSError:
                pass
        return removed

    # -----------------------------
    # Lines
    # -----------------------------
    def subscribe(self, fn: Callable[[str], None]) -> None:
        with self._lock:
            self._subscribers.append(fn)

    def post(self, msg: str) -> str:
        ts = dt.datetime.now().strftime("%H:%M:%S")
        line = f"[{ts}] {msg}"
        with self._lock:
            self._buf.append(line)
            subscribers = list(self._subscribers)
            if self._fp is not None:
                self._fp.write(line + "\n")
        for fn in subscribers:
            fn(line)
        return line

    def lines(self, last: Optional[int] = None) -> List[str]:
        with self._lock:
            out = list(self._buf)
        return out[-last:] if last else out
