"""Remote source backed by an HTTP document export.

Expected layout under ``base_url``:

* ``GET {base_url}/YYYY-MM-DD.txt`` -- 200 with the entry text, 404 when
  the export holds nothing for that date.
* ``GET {base_url}/index.txt`` -- one ``YYYY-MM-DD`` per line (optional;
  404 means "no listing").
"""

from __future__ import annotations

import logging
import threading
from datetime import date

import requests

from diary_sync.errors import UpstreamUnavailableError
from diary_sync.file_handler import decode_bytes
from diary_sync.remote.base import parse_date_stem

logger = logging.getLogger(__name__)


class HttpRemoteSource:
    """Fetch diary text from a web export.

    Args:
        base_url: Export root URL.
        timeout: Read timeout in seconds (connect timeout is capped at 10).
        auth: Optional ``(username, password)`` for basic auth.
        verify: Verify TLS certificates.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        auth: tuple[str, str] | None = None,
        verify: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.auth = auth
        self.verify = verify
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.auth = self.auth
            session.verify = self.verify
            self._thread_local.session = session
        return self._thread_local.session

    def _get(self, name: str) -> requests.Response | None:
        url = f"{self.base_url}/{name}"
        try:
            response = self._get_session().get(
                url, timeout=(min(10.0, self.timeout), self.timeout)
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(
                f"GET {url} failed: {exc}"
            ) from exc

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise UpstreamUnavailableError(
                f"GET {url} returned {response.status_code}"
            ) from exc
        return response

    def fetch(self, diary_date: date) -> str | None:
        response = self._get(f"{diary_date.isoformat()}.txt")
        if response is None:
            return None
        content, encoding = decode_bytes(response.content)
        logger.debug(
            "Fetched %s from %s (%s)", diary_date, self.base_url, encoding
        )
        return content

    def list_dates(self) -> list[date]:
        response = self._get("index.txt")
        if response is None:
            return []
        content, _ = decode_bytes(response.content)
        dates = {
            parsed
            for line in content.splitlines()
            if (parsed := parse_date_stem(line)) is not None
        }
        return sorted(dates)
