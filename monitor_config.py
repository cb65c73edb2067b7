"""
monitor_config.py

Configuration for the YouTube like monitor.

Defaults live in the Config dataclass below. Local changes go in
config_overrides.json next to this file (or a path given with --config):

    {"version": 1, "overrides": {"OBS_INPUT_NAME": "Likes", "POLL_INTERVAL_SECONDS": 20}}

A legacy flat dict ({"OBS_INPUT_NAME": "Likes"}) is accepted as well.
"""

from __future__ import annotations

import datetime as dt
import json
import os
import re
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from monitor_errors import ConfigError


@dataclass
class Config:
    """Configuration for the like monitor."""

    # ----------------------------
    # YOUTUBE DATA API
    # ----------------------------
    YOUTUBE_API_KEY: str = ""
    YOUTUBE_VIDEO_ID: str = ""
    YOUTUBE_TIMEOUT_SECONDS: float = 10.0

    # ----------------------------
    # OBS CONNECTION
    # ----------------------------
    OBS_HOST: str = "localhost"
    OBS_PORT: int = 4455
    OBS_PASSWORD: str = ""  # leave blank if auth is OFF in OBS WebSocket
    OBS_TIMEOUT_SECONDS: int = 5

    # Input (source) that receives the count. Text sources use the "text" setting;
    # the plain "likes" setting is for sources/scripts that read the raw number.
    OBS_INPUT_NAME: str = "LikeAlertText"
    OBS_SETTING_KEY: str = ""  # blank = "text" when a template is set, else "likes"
    TEXT_TEMPLATE: str = ""  # e.g. "Likes: %d"  (exactly one integer placeholder)

    # ----------------------------
    # POLLING
    # ----------------------------
    POLL_INTERVAL_SECONDS: float = 15.0
    ERROR_RETRY_SECONDS: float = 30.0  # wait after a failed fetch (quota friendly)
    AUTO_START: bool = False

    # ----------------------------
    # WEB HUB (browser overlay)
    # ----------------------------
    WEB_HUB_ENABLED: bool = False
    WEB_HUB_HOST: str = "0.0.0.0"
    WEB_HUB_PORT: int = 8080
    WEB_STATIC_DIR: str = ""  # built overlay (index.html + assets); blank = built-in page

    # ----------------------------
    # LOGGING
    # ----------------------------
    LOG_TO_FILE_ENABLED: bool = True
    LOG_DIR: str = ""
    LOG_RUN_FILE_PREFIX: str = "like_monitor"
    LOG_RETENTION_COUNT: int = 30
    LOG_BUFFER_LINES: int = 400


DEFAULT_OBS_PORT = Config.OBS_PORT

# Never written by the UI when it saves the form back to the overrides file.
SECRET_FIELDS = {"YOUTUBE_API_KEY", "OBS_PASSWORD"}


def _cfg_base_dir() -> str:
    try:
        return os.path.dirname(os.path.abspath(__file__))
    except Exception:
        return os.getcwd()


CFG_OVERRIDE_PATH = os.path.join(_cfg_base_dir(), "config_overrides.json")


# -----------------------------
# Overrides file
# -----------------------------

def load_overrides(path: str = CFG_OVERRIDE_PATH) -> dict:
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if isinstance(data, dict) and isinstance(data.get("overrides"), dict):
        return data["overrides"]
    if isinstance(data, dict):
        # allow legacy flat dict
        return data
    raise ConfigError(f"{path}: expected a JSON object")


def save_overrides(overrides: dict, path: str = CFG_OVERRIDE_PATH) -> None:
    payload = {
        "version": 1,
        "saved_utc": dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds"),
        "overrides": overrides or {},
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def _coerce(key: str, cur, v):
    if isinstance(cur, bool):
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)
    if isinstance(cur, int):
        return int(v)
    if isinstance(cur, float):
        return float(v)
    if isinstance(cur, str):
        return "" if v is None else str(v)
    raise ConfigError(f"{key}: unsupported field type {type(cur).__name__}")


def apply_overrides(cfg: Config, overrides: dict) -> list:
    """Apply known fields onto cfg. Returns the list of keys that were applied."""
    applied = []
    known = {f.name for f in fields(cfg)}
    for k, v in (overrides or {}).items():
        if k not in known:
            continue
        try:
            setattr(cfg, k, _coerce(k, getattr(cfg, k), v))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{k}: invalid value {v!r} ({e})") from e
        applied.append(k)
    return applied


def load_config(path: Optional[str] = None) -> Config:
    cfg = Config()
    apply_overrides(cfg, load_overrides(path or CFG_OVERRIDE_PATH))
    return cfg


def config_snapshot(cfg: Config, include_secrets: bool = False) -> Dict[str, object]:
    snap = {}
    for f in fields(cfg):
        if f.name in SECRET_FIELDS and not include_secrets:
            continue
        snap[f.name] = getattr(cfg, f.name)
    return snap


# -----------------------------
# Input helpers
# -----------------------------

def parse_obs_address(addr: str, default_port: int = DEFAULT_OBS_PORT) -> Tuple[str, int]:
    """"localhost:4455", "ws://10.0.0.5:4455/", "obs-pc" -> (host, port)."""
    s = (addr or "").strip()
    for prefix in ("ws://", "wss://"):
        if s.lower().startswith(prefix):
            s = s[len(prefix):]
    s = s.rstrip("/")
    if not s:
        return "localhost", default_port

    if s.startswith("["):
        # [::1]:4455
        host, _, rest = s[1:].partition("]")
        port_s = rest[1:] if rest.startswith(":") else ""
    elif s.count(":") == 1:
        host, port_s = s.split(":", 1)
    else:
        host, port_s = s, ""

    if not port_s:
        return host, default_port
    try:
        port = int(port_s)
    except ValueError:
        raise ConfigError(f"invalid OBS port in {addr!r}") from None
    if not (0 < port < 65536):
        raise ConfigError(f"OBS port out of range in {addr!r}")
    return host, port


# printf-style conversion: flags/width/precision, then the type character.
# A trailing "%" with nothing after it matches with an empty type.
_CONVERSION_RE = re.compile(r"%(?P<spec>[^a-zA-Z%]*)(?P<type>[a-zA-Z%]|$)")
_INT_SPEC_RE = re.compile(r"[#0\- +]*\d*")


def validate_template(template: str) -> str:
    """Require exactly one integer placeholder (%d, %i, %u, optionally with flags/width)."""
    if not template:
        raise ConfigError("template is empty")
    placeholders = 0
    for m in _CONVERSION_RE.finditer(template):
        spec, kind = m.group("spec"), m.group("type")
        if kind == "%" and not spec:
            continue
        if kind in ("d", "i", "u") and _INT_SPEC_RE.fullmatch(spec):
            placeholders += 1
            continue
        raise ConfigError(f"template has an unsupported placeholder {m.group(0)!r}; use %d for the count")
    if placeholders != 1:
        raise ConfigError(f"template needs exactly one %d placeholder (found {placeholders})")
    return template
