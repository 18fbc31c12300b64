"""
Brief: Tests for xkcdns.comics.fetcher.ComicFetcher using a fake requests session.

Inputs:
  - None

Outputs:
  - None
"""

import threading

import pytest
import requests

from xkcdns.comics.fetcher import DEFAULT_USER_AGENT, ComicFetcher, FetchResponse
from xkcdns.errors import FetchFailed


class FakeResponse:
    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content


class FakeSession:
    """
    Brief: Minimal requests.Session stand-in recording get() calls.

    Inputs:
      - result: FakeResponse to return or exception instance to raise

    Outputs:
      - None: inspect calls / closed attributes
    """

    def __init__(self, result):
        self.result = result
        self.headers = {}
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def close(self):
        self.closed = True


def _fetcher(result, **kw):
    """
    Brief: Build a ComicFetcher whose sessions all come from FakeSession(result).

    Inputs:
      - result: FakeResponse or exception handed to every FakeSession

    Outputs:
      - tuple: (fetcher, list of FakeSession instances created so far)
    """
    created = []

    def factory():
        s = FakeSession(result)
        created.append(s)
        return s

    return ComicFetcher(session_factory=factory, **kw), created


def test_fetch_returns_status_and_body():
    fetcher, sessions = _fetcher(FakeResponse(200, b"<html></html>"), timeout_ms=2500)
    resp = fetcher.fetch("https://xkcd.com/614/")
    assert resp == FetchResponse(status_code=200, body=b"<html></html>")
    assert sessions[0].calls == [("https://xkcd.com/614/", 2.5)]


def test_non_success_status_is_returned_not_raised():
    fetcher, _ = _fetcher(FakeResponse(404, b"not found"))
    assert fetcher.fetch("https://xkcd.com/404/").status_code == 404


@pytest.mark.parametrize(
    "exc",
    [
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        requests.exceptions.SSLError("bad cert"),
        requests.TooManyRedirects("loop"),
    ],
)
def test_transport_errors_raise_fetch_failed(exc):
    """
    Brief: Any requests transport exception surfaces as FetchFailed.

    Inputs:
      - exc: requests exception raised by the session

    Outputs:
      - None: Asserts FetchFailed with the requests error chained as __cause__
    """
    fetcher, _ = _fetcher(exc)
    with pytest.raises(FetchFailed) as info:
        fetcher.fetch("https://xkcd.com/1/")
    assert info.value.__cause__ is exc


def test_user_agent_header_set():
    fetcher, sessions = _fetcher(FakeResponse())
    fetcher.fetch("https://xkcd.com/1/")
    assert sessions[0].headers["User-Agent"] == DEFAULT_USER_AGENT

    fetcher2, sessions2 = _fetcher(FakeResponse(), user_agent="tests/1.0")
    fetcher2.fetch("https://xkcd.com/1/")
    assert sessions2[0].headers["User-Agent"] == "tests/1.0"


def test_session_reused_within_a_thread():
    fetcher, sessions = _fetcher(FakeResponse())
    fetcher.fetch("https://xkcd.com/1/")
    fetcher.fetch("https://xkcd.com/2/")
    assert len(sessions) == 1
    assert len(sessions[0].calls) == 2


def test_each_thread_gets_its_own_session():
    """
    Brief: Concurrent worker threads never share a requests session.

    Inputs:
      - 4 threads each fetching twice

    Outputs:
      - None: Asserts one session per thread, each used only by its thread
    """
    fetcher, sessions = _fetcher(FakeResponse())
    used = {}
    used_lock = threading.Lock()

    def worker(i):
        fetcher.fetch(f"https://xkcd.com/{i}/")
        fetcher.fetch(f"https://xkcd.com/{i}/")
        with used_lock:
            used[i] = fetcher._local.session

    threads = [threading.Thread(target=worker, args=(i + 1,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(sessions) == 4
    assert len({id(s) for s in used.values()}) == 4
    for i, s in used.items():
        assert s.calls == [(f"https://xkcd.com/{i}/", 5.0)] * 2


def test_close_closes_every_session():
    fetcher, sessions = _fetcher(FakeResponse())
    fetcher.fetch("https://xkcd.com/1/")
    t = threading.Thread(target=fetcher.fetch, args=("https://xkcd.com/2/",))
    t.start()
    t.join()
    fetcher.close()
    assert len(sessions) == 2
    assert all(s.closed for s in sessions)

    # A fetch after close opens a fresh session.
    fetcher.fetch("https://xkcd.com/3/")
    assert len(sessions) == 3
    assert not sessions[2].closed


def test_default_factory_builds_requests_session():
    fetcher = ComicFetcher()
    try:
        assert isinstance(fetcher._session(), requests.Session)
    finally:
        fetcher.close()
