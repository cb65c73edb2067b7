"""
obs_sink.py

Destination sink: writes the like count into an OBS input over OBS WebSocket v5
(SetInputSettings). Works with a Text (GDI+/FreeType 2) source via the "text"
setting, or any input/script that reads a custom "likes" setting.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Optional

from obsws_python import ReqClient

from monitor_config import Config, validate_template
from monitor_errors import ConfigError, SinkConnectionError, UpdateError


@dataclass(frozen=True)
class SinkTarget:
    host: str = "localhost"
    port: int = 4455
    password: str = ""
    input_name: str = "LikeAlertText"
    setting_key: str = "likes"
    template: str = ""
    timeout: int = 5

    @classmethod
    def from_config(cls, cfg: Config) -> "SinkTarget":
        template = cfg.TEXT_TEMPLATE or ""
        key = (cfg.OBS_SETTING_KEY or "").strip() or ("text" if template else "likes")
        return cls(
            host=cfg.OBS_HOST,
            port=int(cfg.OBS_PORT),
            password=cfg.OBS_PASSWORD or "",
            input_name=cfg.OBS_INPUT_NAME,
            setting_key=key,
            template=template,
            timeout=int(cfg.OBS_TIMEOUT_SECONDS),
        )

    def validate(self) -> "SinkTarget":
        if not (self.host or "").strip():
            raise ConfigError("OBS host is empty")
        if not (self.input_name or "").strip():
            raise ConfigError("OBS input name is empty")
        if not (self.setting_key or "").strip():
            raise ConfigError("OBS setting key is empty")
        if self.template:
            validate_template(self.template)
        return self


def format_value(target: SinkTarget, count: int) -> str:
    if target.template:
        return target.template % count
    return f"{count:d}"


class ObsSink:
    def __init__(self, target: SinkTarget, client_factory=ReqClient):
        self.target = target
        self._client_factory = client_factory
        self.client: Optional[ReqClient] = None
        self.obs_version: str = ""

    @property
    def connected(self) -> bool:
        return self.client is not None

    def connect(self) -> None:
        t = self.target
        try:
            self.client = self._client_factory(
                host=t.host, port=t.port, password=t.password or None, timeout=t.timeout
            )
            # lightweight call to confirm
            ver = self.client.get_version()
            self.obs_version = str(getattr(ver, "obs_version", "") or "")
        except Exception as e:
            self.disconnect()
            raise SinkConnectionError(f"OBS connection to {t.host}:{t.port} failed: {e}") from e

    def push(self, count: int) -> str:
        """Format count and write it to the target input. Returns the value sent."""
        if self.client is None:
            raise UpdateError("OBS not connected")
        value = format_value(self.target, count)
        try:
            self.client.set_input_settings(self.target.input_name, {self.target.setting_key: value}, True)
        except Exception as e:
            raise UpdateError(f"OBS update of {self.target.input_name!r} failed: {e}") from e
        return value

    def disconnect(self) -> None:
        client, self.client = self.client, None
        if client is not None:
            with contextlib.suppress(Exception):
                client.disconnect()
