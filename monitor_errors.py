"""
monitor_errors.py

Error taxonomy shared by the fetcher, the OBS sink and the poll controller.

Fetch side:  AuthError, NotFoundError, TransientError  (session keeps polling)
Sink side:   SinkConnectionError (fatal to session start), UpdateError (per update)
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for every error raised by the like monitor."""


class ConfigError(MonitorError):
    """Invalid configuration or form input (empty fields, bad template, bad override value)."""


class SessionActiveError(MonitorError):
    """start() was called while a poll session is still running or stopping."""


# -----------------------------
# Count fetcher
# -----------------------------

class FetchError(MonitorError):
    pass


class AuthError(FetchError):
    """The API key was rejected."""


class NotFoundError(FetchError):
    """The video ID returned zero items."""


class TransientError(FetchError):
    """Network, timeout, quota or server-side failure. Retry after the fallback delay."""


# -----------------------------
# Destination sink
# -----------------------------

class SinkError(MonitorError):
    pass


class SinkConnectionError(SinkError):
    """The OBS control socket could not be opened."""


class UpdateError(SinkError):
    """A single SetInputSettings call failed on an open connection."""
