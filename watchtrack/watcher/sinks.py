"""
Where a session watcher sends its writes.

``StoreSink`` talks to an in-process ``AppState``; ``HttpSink`` talks to
a running telemetry server over its JSON API.  Both return ``None`` from
lookups when nothing is stored, since a missing skip window or resume
point is the normal case.
"""

from typing import Any, Dict, Optional

import requests

from ..constants import APP_USER_AGENT
from ..errors import NotFoundError, TransientWriteFailure, ValidationError
from ..models import ProgressRecord, SkipWindow


class TelemetrySink:
    """Interface used by ``SessionWatcher``."""

    def upsert_progress(self, user_id: str, content_id: str, content_type: str,
                        progress_seconds: int, total_seconds: int) -> None:
        raise NotImplementedError

    def append_history(self, user_id: str, content_id: str, content_type: str, title: str,
                       poster_path: Optional[str], progress_seconds: int,
                       total_seconds: int) -> None:
        raise NotImplementedError

    def get_window(self, content_id: str, content_type: str) -> Optional[SkipWindow]:
        raise NotImplementedError

    def get_progress(self, user_id: str, content_id: str,
                     content_type: str) -> Optional[ProgressRecord]:
        raise NotImplementedError


class StoreSink(TelemetrySink):
    """Direct calls into the shared ``AppState``."""

    def __init__(self, app_state: "AppState"):  # noqa: F821
        self.app_state = app_state

    def upsert_progress(self, user_id, content_id, content_type, progress_seconds, total_seconds):
        self.app_state.upsert_progress(
            user_id, content_id, content_type, progress_seconds, total_seconds
        )

    def append_history(self, user_id, content_id, content_type, title, poster_path,
                       progress_seconds, total_seconds):
        self.app_state.append_history(
            user_id, content_id, content_type, title, poster_path,
            progress_seconds, total_seconds,
        )

    def get_window(self, content_id, content_type):
        try:
            return self.app_state.get_window(content_id, content_type)
        except NotFoundError:
            return None

    def get_progress(self, user_id, content_id, content_type):
        try:
            return self.app_state.get_progress(user_id, content_id, content_type)
        except NotFoundError:
            return None


class HttpSink(TelemetrySink):
    """Calls against the server's ``/watch-progress``, ``/watch-history``
    and ``/skip-timestamps`` endpoints.

    Transport errors and 5xx answers raise ``TransientWriteFailure``; a
    400 raises ``ValidationError`` with the server's code.
    """

    def __init__(self, base_url: str, *, timeout: float = 5,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", APP_USER_AGENT)

    def upsert_progress(self, user_id, content_id, content_type, progress_seconds, total_seconds):
        self._request("POST", "/watch-progress", json={
            "userId": user_id,
            "contentId": content_id,
            "contentType": content_type,
            "progressSeconds": progress_seconds,
            "totalSeconds": total_seconds,
        })

    def append_history(self, user_id, content_id, content_type, title, poster_path,
                       progress_seconds, total_seconds):
        self._request("POST", "/watch-history", json={
            "userId": user_id,
            "contentId": content_id,
            "contentType": content_type,
            "title": title,
            "posterPath": poster_path,
            "progressSeconds": progress_seconds,
            "totalSeconds": total_seconds,
        })

    def get_window(self, content_id, content_type):
        data = self._request("GET", "/skip-timestamps", params={
            "contentId": content_id, "contentType": content_type,
        })
        return SkipWindow.from_dict(data) if data is not None else None

    def get_progress(self, user_id, content_id, content_type):
        data = self._request("GET", "/watch-progress", params={
            "userId": user_id, "contentId": content_id, "contentType": content_type,
        })
        return ProgressRecord.from_dict(data) if data is not None else None

    def _request(self, method: str, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        """JSON body of the response, or ``None`` on 404."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransientWriteFailure(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code == 400:
            body = _json_or_empty(response)
            raise ValidationError(body.get("error"), code=body.get("code"))
        if response.status_code >= 400:
            raise TransientWriteFailure(f"{method} {path} returned {response.status_code}")
        return _json_or_empty(response)


def _json_or_empty(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
