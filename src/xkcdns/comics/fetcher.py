from __future__ import annotations

import importlib.metadata
import logging
import threading
from typing import Callable, List, NamedTuple, Optional

import requests

from ..errors import FetchFailed

logger = logging.getLogger(__name__)

try:
    XKCDNS_VERSION = importlib.metadata.version("xkcdns")
except Exception:  # pragma: no cover - not installed
    XKCDNS_VERSION = "unknown"

DEFAULT_USER_AGENT = f"xkcdns/{XKCDNS_VERSION}"


class FetchResponse(NamedTuple):
    """Status code and raw body of a fetched page."""

    status_code: int
    body: bytes


class ComicFetcher:
    """
    Brief: Fetch comic pages over HTTP(S) with a bounded timeout.

    Inputs:
    - timeout_ms: per-request timeout in milliseconds (connect and read)
    - user_agent: User-Agent header sent with every request
    - session_factory: callable building a requests.Session (tests inject fakes)

    Outputs:
    - ComicFetcher instance

    Each listener worker thread gets its own session from session_factory;
    requests.Session is not safe to share between threads.

    Example:
        >>> fetcher = ComicFetcher(timeout_ms=2000)
        >>> # fetcher.fetch("https://xkcd.com/614/").status_code
    """

    def __init__(
        self,
        timeout_ms: int = 5000,
        user_agent: Optional[str] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.timeout_ms = max(1, int(timeout_ms))
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers["User-Agent"] = self.user_agent
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def fetch(self, url: str) -> FetchResponse:
        """
        Brief: GET a URL and return its status and body.

        Inputs:
        - url: absolute http(s) URL

        Outputs:
        - FetchResponse(status_code, body); redirects are followed, so the
          random-comic URL yields the page of the comic it redirects to.

        Raises:
        - FetchFailed on connection errors, TLS errors, and timeouts. Non-success
          statuses are not errors here; the caller decides how to map them.
        """
        try:
            r = self._session().get(url, timeout=self.timeout_ms / 1000.0)
        except requests.Timeout as e:
            raise FetchFailed(f"timed out fetching {url}: {e}") from e
        except requests.RequestException as e:
            raise FetchFailed(f"error fetching {url}: {e}") from e
        logger.debug("Fetched %s -> %d (%d bytes)", url, r.status_code, len(r.content))
        return FetchResponse(status_code=int(r.status_code), body=r.content)

    def close(self) -> None:
        """Close every session opened by any thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
