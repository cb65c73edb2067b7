"""
like_monitor.py

YouTube Like Monitor: polls a video's like count and writes it into an OBS
input (OBS WebSocket v5). Optionally serves a browser overlay that receives
the count over a WebSocket.

Run:
    like-monitor                      # desktop window
    like-monitor --web                # also serve the overlay hub
    like-monitor --headless           # no window; uses config_overrides.json
"""

from __future__ import annotations

import argparse
import queue
import sys
import tkinter as tk
from tkinter import scrolledtext, ttk
from typing import Optional, Tuple

from like_hub import HubServer, LikeHub
from monitor_config import (
    CFG_OVERRIDE_PATH,
    Config,
    apply_overrides,
    config_snapshot,
    load_config,
    load_overrides,
    parse_obs_address,
    save_overrides,
)
from monitor_errors import MonitorError
from obs_sink import SinkTarget
from poll_controller import RUNNING, STOPPING, PollController
from run_log import RunLog
from youtube_likes import LikeFetcher

APP_NAME = "YouTube Like Monitor"

HELP_TEXT = """🎥 HOW TO FIND A VIDEO ID:
- Copy the part after v= in the YouTube URL: https://youtube.com/watch?v=ABC123 → ABC123

🔑 HOW TO GET A YOUTUBE API KEY:
1. Visit https://console.cloud.google.com/
2. Create a project
3. Go to APIs & Services → Library
4. Search for "YouTube Data API v3" and enable it
5. Go to Credentials → Create API Key

📡 OBS SETUP:
- Tools → WebSocket Server Settings → Enable WebSocket server (default port 4455)
- Add a Text source and enter its exact name as "OBS Input Name"
- Leave the template blank to send the bare number, or use e.g. "Likes: %d"

🌐 BROWSER OVERLAY (when the web hub is enabled):
- Add a Browser Source pointing at http://127.0.0.1:<port>/

⚠️ Usage Tip:
- Don’t poll too often. The API has quota limits."""


def target_from_form(cfg: Config, obs_address: str, obs_password: str, input_name: str, template: str) -> SinkTarget:
    host, port = parse_obs_address(obs_address)
    cfg.OBS_HOST, cfg.OBS_PORT = host, port
    cfg.OBS_PASSWORD = obs_password
    cfg.OBS_INPUT_NAME = input_name.strip() or Config.OBS_INPUT_NAME
    cfg.TEXT_TEMPLATE = template
    return SinkTarget.from_config(cfg)


def controls_for_state(state: str) -> Tuple[bool, bool, bool]:
    """(start enabled, stop enabled, form editable) for a controller state."""
    if state == RUNNING:
        return False, True, False
    if state == STOPPING:
        return False, False, False
    # IDLE, including after an OBS connection failure
    return True, False, True


def make_hub(cfg: Config, log: RunLog) -> Optional[HubServer]:
    if not cfg.WEB_HUB_ENABLED:
        return None
    return HubServer(LikeHub(), host=cfg.WEB_HUB_HOST, port=cfg.WEB_HUB_PORT,
                     static_dir=cfg.WEB_STATIC_DIR, post=log.post)


class App:
    def __init__(self, cfg: Config, config_path: str = CFG_OVERRIDE_PATH):
        self.cfg = cfg
        self.config_path = config_path
        self.running = True

        self.log = RunLog.from_config(cfg)
        self._log_lines = queue.Queue()
        self.log.subscribe(self._log_lines.put)
        try:
            path = self.log.open()
        except OSError as e:
            path = None
            self.log.post(f"File logging disabled: {e}")
        if path:
            self.log.post(f"Run log file: {path}")

        self.hub = make_hub(cfg, self.log)
        if self.hub is not None:
            try:
                self.hub.start()
            except OSError as e:
                self.log.post(f"WEB: hub disabled ({e})")
                self.hub = None

        self.controller = PollController(
            LikeFetcher(timeout=cfg.YOUTUBE_TIMEOUT_SECONDS),
            hub=self.hub,
            post=self.log.post,
        )

        self.root = tk.Tk()
        self.root.title(APP_NAME)
        self.root.geometry("500x560")
        self.root.minsize(440, 480)

        self._build_ui()
        self._ui_pump()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        if cfg.AUTO_START and cfg.YOUTUBE_API_KEY and cfg.YOUTUBE_VIDEO_ID:
            self.root.after(200, self._on_start)

    def _build_ui(self):
        style = ttk.Style()
        style.theme_use("clam")
        style.configure("Likes.TLabel", font=("Segoe UI", 16, "bold"))

        tabs = ttk.Notebook(self.root)
        tabs.pack(fill="both", expand=True)

        main = ttk.Frame(tabs, padding=12)
        tabs.add(main, text="Monitor")

        self.api_key_var = tk.StringVar(value=self.cfg.YOUTUBE_API_KEY)
        self.video_id_var = tk.StringVar(value=self.cfg.YOUTUBE_VIDEO_ID)
        self.obs_addr_var = tk.StringVar(value=f"{self.cfg.OBS_HOST}:{self.cfg.OBS_PORT}")
        self.obs_pw_var = tk.StringVar(value=self.cfg.OBS_PASSWORD)
        self.input_var = tk.StringVar(value=self.cfg.OBS_INPUT_NAME)
        self.template_var = tk.StringVar(value=self.cfg.TEXT_TEMPLATE)

        form = [
            ("🔑 YouTube API Key", self.api_key_var, "*"),
            ("🎥 YouTube Video ID", self.video_id_var, ""),
            ("📡 OBS WebSocket URL", self.obs_addr_var, ""),
            ("🔐 OBS WebSocket Password (optional)", self.obs_pw_var, "*"),
            ("🅰 OBS Input Name", self.input_var, ""),
            ("📝 Text Template (optional, e.g. Likes: %d)", self.template_var, ""),
        ]
        self._entries = []
        for label, var, show in form:
            ttk.Label(main, text=label).pack(anchor="w")
            entry = ttk.Entry(main, textvariable=var, show=show)
            entry.pack(fill="x", pady=(0, 6))
            self._entries.append(entry)

        controls = ttk.Frame(main)
        controls.pack(fill="x", pady=(6, 0))
        self.btn_start = ttk.Button(controls, text="▶ Start", command=self._on_start)
        self.btn_stop = ttk.Button(controls, text="■ Stop", command=self._on_stop)
        self.btn_start.grid(row=0, column=0, padx=4, sticky="ew")
        self.btn_stop.grid(row=0, column=1, padx=4, sticky="ew")
        controls.columnconfigure(0, weight=1)
        controls.columnconfigure(1, weight=1)
        self.btn_stop.state(["disabled"])

        self.likes_var = tk.StringVar(value="Likes: N/A")
        ttk.Label(main, textvariable=self.likes_var, style="Likes.TLabel").pack(anchor="w", pady=(12, 0))

        self.error_var = tk.StringVar(value="")
        tk.Label(main, textvariable=self.error_var, fg="#D32F2F", font=("Segoe UI", 10, "bold"),
                 anchor="w", justify="left", wraplength=440).pack(fill="x", pady=(4, 0))

        log_frame = ttk.LabelFrame(main, text="Log")
        log_frame.pack(fill="both", expand=True, pady=(8, 0))
        self.log_text = scrolledtext.ScrolledText(log_frame, height=6, font=("Consolas", 9), state="disabled")
        self.log_text.pack(fill="both", expand=True, padx=6, pady=6)

        help_frame = ttk.Frame(tabs, padding=12)
        tabs.add(help_frame, text="Help")
        help_text = scrolledtext.ScrolledText(help_frame, wrap="word", font=("Segoe UI", 10))
        help_text.insert("end", HELP_TEXT)
        help_text.config(state="disabled")
        help_text.pack(fill="both", expand=True)

    # -----------------------------
    # Buttons
    # -----------------------------
    def _set_buttons(self, state: str):
        start_on, stop_on, form_on = controls_for_state(state)
        self.btn_start.state(["!disabled"] if start_on else ["disabled"])
        self.btn_stop.state(["!disabled"] if stop_on else ["disabled"])
        for entry in self._entries:
            entry.state(["!disabled"] if form_on else ["disabled"])

    def _on_start(self):
        self.error_var.set("")
        try:
            target = target_from_form(
                self.cfg,
                self.obs_addr_var.get(),
                self.obs_pw_var.get().strip(),
                self.input_var.get(),
                self.template_var.get(),
            )
            self.controller.start(
                self.api_key_var.get(),
                self.video_id_var.get(),
                target,
                interval_seconds=self.cfg.POLL_INTERVAL_SECONDS,
                retry_seconds=self.cfg.ERROR_RETRY_SECONDS,
            )
        except MonitorError as e:
            self.error_var.set(str(e))
            self.log.post(f"Cannot start: {e}")
            return
        self.cfg.YOUTUBE_VIDEO_ID = self.video_id_var.get().strip()
        self._save_form()

    def _on_stop(self):
        self.controller.stop()

    def _save_form(self):
        try:
            overrides = load_overrides(self.config_path)
        except MonitorError:
            overrides = {}
        snap = config_snapshot(self.cfg)
        for key in ("YOUTUBE_VIDEO_ID", "OBS_HOST", "OBS_PORT", "OBS_INPUT_NAME", "TEXT_TEMPLATE"):
            overrides[key] = snap[key]
        try:
            save_overrides(overrides, self.config_path)
        except OSError as e:
            self.log.post(f"Could not save settings: {e}")

    # -----------------------------
    # UI pump (worker thread never touches Tk widgets)
    # -----------------------------
    def _append_log(self, line: str):
        self.log_text.config(state="normal")
        self.log_text.insert("end", line + "\n")
        self.log_text.see("end")
        self.log_text.config(state="disabled")

    def _ui_pump(self):
        while True:
            try:
                ev = self.controller.events.get_nowait()
            except queue.Empty:
                break
            if ev.kind == "state":
                self._set_buttons(ev.state)
            elif ev.kind == "count":
                self.likes_var.set(f"👍 Likes: {ev.count}")
            elif ev.kind == "error":
                self.error_var.set(ev.message)

        while True:
            try:
                line = self._log_lines.get_nowait()
            except queue.Empty:
                break
            self._append_log(line)

        if self.running:
            self.root.after(50, self._ui_pump)

    def _on_close(self):
        self.running = False
        self.controller.stop()
        self.controller.join(timeout=2.0)
        if self.hub is not None:
            self.hub.stop()
        self.log.close()
        self.root.destroy()

    def run(self):
        self.root.mainloop()


def run_headless(cfg: Config) -> int:
    """Run one session from config in the foreground until Ctrl+C."""
    log = RunLog.from_config(cfg)
    log.subscribe(print)
    try:
        log.open()
    except OSError as e:
        log.post(f"File logging disabled: {e}")

    hub = None
    try:
        hub = make_hub(cfg, log)
        if hub is not None:
            try:
                hub.start()
            except OSError as e:
                log.post(f"WEB: hub disabled ({e})")
                hub = None

        controller = PollController(LikeFetcher(timeout=cfg.YOUTUBE_TIMEOUT_SECONDS), hub=hub, post=log.post)
        try:
            controller.start(
                cfg.YOUTUBE_API_KEY,
                cfg.YOUTUBE_VIDEO_ID,
                SinkTarget.from_config(cfg),
                interval_seconds=cfg.POLL_INTERVAL_SECONDS,
                retry_seconds=cfg.ERROR_RETRY_SECONDS,
            )
        except MonitorError as e:
            log.post(f"Cannot start: {e}")
            return 2

        try:
            while not controller.join(timeout=0.5):
                pass
        except KeyboardInterrupt:
            controller.stop()
            controller.join(timeout=5.0)
            return 0
        # session ended on its own (OBS connection failure)
        return 1
    finally:
        if hub is not None:
            hub.stop()
        log.close()


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="like-monitor", description=APP_NAME)
    p.add_argument("--config", default=CFG_OVERRIDE_PATH, help="overrides JSON file (default: %(default)s)")
    p.add_argument("--headless", action="store_true", help="run without a window, using the config file")
    p.add_argument("--web", action="store_true", help="serve the browser overlay hub")
    p.add_argument("--port", type=int, default=None, help="web hub port (implies --web)")
    return p


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        cfg = load_config(args.config)
    except MonitorError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    if args.web or args.port is not None:
        extra = {"WEB_HUB_ENABLED": True}
        if args.port is not None:
            extra["WEB_HUB_PORT"] = args.port
        apply_overrides(cfg, extra)

    if args.headless:
        return run_headless(cfg)
    App(cfg, config_path=args.config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
