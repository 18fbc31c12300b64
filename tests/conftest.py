"""
Brief: Global pytest configuration and shared fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import sys
import threading
from typing import Dict, List, Optional

import pytest

# Ensure 'src' is on sys.path so 'xkcdns' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from xkcdns.comics.fetcher import FetchResponse  # noqa: E402
from xkcdns.errors import FetchFailed  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


@pytest.fixture(autouse=True)
def reset_listener_handlers():
    """
    Brief: Clear class-level query handlers between tests.

    Inputs:
      - None

    Outputs:
      - None
    """
    yield
    from xkcdns.servers.tcp_server import DNSTCPHandler
    from xkcdns.servers.udp_server import DNSUDPHandler

    DNSUDPHandler.query_handler = None
    DNSUDPHandler.max_udp_payload = 1232
    DNSTCPHandler.query_handler = None


def comic_page(
    number: Optional[int] = 614,
    title: str = "Woodpecker",
    img_src: Optional[str] = "//imgs.xkcd.com/comics/woodpecker.png",
    alt: str = "If you don't have an extension cord I can get that too.",
    og_url: Optional[str] = None,
) -> bytes:
    """
    Brief: Build a minimal comic page shaped like the real site's markup.

    Inputs:
      - number: comic number used for og:url (None omits the meta tag)
      - title / img_src / alt: page fields (img_src None omits the image)
      - og_url: explicit og:url value overriding the one built from number

    Outputs:
      - bytes: HTML document
    """
    if og_url is None and number is not None:
        og_url = f"https://xkcd.com/{number}/"
    meta = f'<meta property="og:url" content="{og_url}">' if og_url is not None else ""
    img = (
        f'<img src="{img_src}" title="{alt}" alt="{title}">' if img_src is not None else ""
    )
    html = f"""<!DOCTYPE html>
<html>
<head>
<title>xkcd: {title}</title>
{meta}
</head>
<body>
<div id="middleContainer" class="box">
<div id="ctitle">{title}</div>
<div id="comic">
{img}
</div>
</div>
</body>
</html>
"""
    return html.encode("utf-8")


class FakeFetcher:
    """
    Brief: Stand-in for ComicFetcher serving canned pages and counting calls.

    Inputs:
      - pages: mapping of URL -> (status_code, body) or an Exception to raise
      - delay_event: optional Event every fetch waits on before returning

    Outputs:
      - None: inspect calls (list of URLs) after use
    """

    def __init__(self, pages: Dict[str, object], delay_event: Optional[threading.Event] = None):
        self.pages = dict(pages)
        self.calls: List[str] = []
        self._lock = threading.Lock()
        self.delay_event = delay_event

    def fetch(self, url: str) -> FetchResponse:
        with self._lock:
            self.calls.append(url)
        if self.delay_event is not None:
            self.delay_event.wait(5)
        page = self.pages.get(url)
        if page is None:
            raise FetchFailed(f"no route to {url}")
        if isinstance(page, Exception):
            raise page
        status, body = page
        return FetchResponse(status_code=status, body=body)

    def close(self) -> None:
        pass
