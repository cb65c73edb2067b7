"""
youtube_likes.py

Count fetcher: reads a video's like count from the YouTube Data API v3
(videos.list, part=statistics) using an API key.

How to get a key: console.cloud.google.com -> APIs & Services -> Library ->
"YouTube Data API v3" -> Enable -> Credentials -> Create API Key.
Every videos.list call costs 1 quota unit (10,000/day by default).
"""

from __future__ import annotations

import datetime as dt
import http.client
import json
from dataclasses import dataclass, field
from typing import Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from monitor_errors import AuthError, FetchError, NotFoundError, TransientError

# 403 reasons that mean "try again later" rather than "bad key"
_RETRYABLE_REASONS = {
    "quotaExceeded",
    "dailyLimitExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "backendError",
}
_AUTH_REASONS = {"keyInvalid", "keyExpired", "accessNotConfigured", "forbidden", "ipRefererBlocked"}


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class CountSnapshot:
    count: int
    observed_at: dt.datetime = field(default_factory=utcnow)


def _error_info(err: HttpError):
    """(status, reasons, message) from an HttpError, tolerant of odd bodies."""
    status = getattr(getattr(err, "resp", None), "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None

    reasons = set()
    message = ""
    content = getattr(err, "content", b"") or b""
    try:
        body = json.loads(content.decode("utf-8") if isinstance(content, bytes) else content)
        error = body.get("error", {}) if isinstance(body, dict) else {}
        if isinstance(error, dict):
            message = str(error.get("message") or "")
            for item in error.get("errors") or []:
                if isinstance(item, dict) and item.get("reason"):
                    reasons.add(str(item["reason"]))
            for item in error.get("details") or []:
                if isinstance(item, dict) and item.get("reason"):
                    reasons.add(str(item["reason"]))
    except (ValueError, AttributeError):
        pass
    if not message:
        message = str(err)
    return status, reasons, message


def classify_http_error(err: HttpError) -> FetchError:
    status, reasons, message = _error_info(err)
    lowered = message.lower()

    if reasons & _RETRYABLE_REASONS or status == 429:
        return TransientError(f"YouTube quota/rate limit ({status}): {message}")
    if status == 404:
        return NotFoundError(f"YouTube returned 404: {message}")
    if status == 401 or (reasons & _AUTH_REASONS):
        return AuthError(f"YouTube rejected the API key ({status}): {message}")
    if status == 400 and ("api key" in lowered or "badrequest" in {r.lower() for r in reasons}):
        return AuthError(f"YouTube rejected the API key ({status}): {message}")
    if status == 403:
        return AuthError(f"YouTube denied access ({status}): {message}")
    return TransientError(f"YouTube error ({status}): {message}")


class LikeFetcher:
    def __init__(self, timeout: float = 10.0, service_factory=None):
        self.timeout = timeout
        self._service_factory = service_factory or self._build_service
        self._service = None
        self._service_key: Optional[str] = None

    def _build_service(self, api_key: str):
        # static discovery document: no network round trip here
        return build(
            "youtube",
            "v3",
            developerKey=api_key,
            http=httplib2.Http(timeout=self.timeout),
            cache_discovery=False,
        )

    def _service_for(self, api_key: str):
        if self._service is None or self._service_key != api_key:
            self._service = self._service_factory(api_key)
            self._service_key = api_key
        return self._service

    def fetch(self, api_key: str, video_id: str) -> CountSnapshot:
        try:
            service = self._service_for(api_key)
            response = service.videos().list(part="statistics", id=video_id).execute()
        except HttpError as e:
            raise classify_http_error(e) from e
        except (httplib2.HttpLib2Error, http.client.HTTPException, OSError) as e:
            # timeouts, DNS, refused or dropped connections, truncated responses
            raise TransientError(f"network error: {type(e).__name__}: {e}") from e

        items = (response or {}).get("items") or []
        if not items:
            raise NotFoundError(f"no video found for id {video_id!r}")

        stats = items[0].get("statistics") or {}
        try:
            # likeCount is absent when the owner hides likes
            count = int(stats.get("likeCount", 0))
        except (TypeError, ValueError) as e:
            raise TransientError(f"unexpected likeCount {stats.get('likeCount')!r}") from e
        return CountSnapshot(count=max(0, count))
