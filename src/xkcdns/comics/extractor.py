"""HTML field extraction for comic pages.

Brief:
  Pulls the title, image source, alt text, and self-referential URL out of a
  comic page, and derives the canonical comic number from that URL.

Inputs:
  - Raw HTML bytes as returned by the fetcher.

Outputs:
  - ExtractedFields tuples and integer comic numbers.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from bs4 import BeautifulSoup

from ..errors import ExtractionFailed

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")


class ExtractedFields(NamedTuple):
    title: str
    image_src: str
    alt_text: str
    self_url: str


def _normalize_image_src(src: str) -> str:
    """Brief: Turn protocol-relative image sources into https URLs.

    Inputs:
      - src: Raw ``src`` attribute value (e.g. "//imgs.xkcd.com/comics/x.png").

    Outputs:
      - str: "https://imgs.xkcd.com/comics/x.png"; other values pass through.
    """

    src = src.strip()
    if src.startswith("//"):
        return f"https:{src}"
    return src


def extract_comic_fields(body: bytes) -> ExtractedFields:
    """Brief: Extract comic fields from a comic page.

    Inputs:
      - body: HTML document bytes.

    Outputs:
      - ExtractedFields(title, image_src, alt_text, self_url). Fields missing
        from the page come back as empty strings; interactive comics have no
        ``#comic img`` and therefore no image or alt text.

    Raises:
      - ExtractionFailed when the document cannot be parsed at all.
    """

    try:
        soup = BeautifulSoup(body, "html.parser")
    except Exception as exc:
        raise ExtractionFailed(f"unparseable comic page: {exc}") from exc

    title_tag = soup.select_one("#ctitle")
    title = title_tag.get_text(strip=True) if title_tag is not None else ""

    image_src = ""
    alt_text = ""
    img = soup.select_one("#comic img")
    if img is not None:
        image_src = _normalize_image_src(str(img.get("src") or ""))
        alt_text = str(img.get("title") or "")

    self_url = ""
    og_url = soup.find("meta", attrs={"property": "og:url"})
    if og_url is not None:
        self_url = str(og_url.get("content") or "").strip()

    return ExtractedFields(
        title=title,
        image_src=image_src,
        alt_text=alt_text,
        self_url=self_url,
    )


def comic_number_from_url(self_url: str) -> int:
    """Brief: Derive the canonical comic number from a page's own URL.

    Inputs:
      - self_url: URL such as "https://xkcd.com/614/".

    Outputs:
      - int: The comic number (614 above).

    Behaviour:
      - The URL must split on "/" into exactly five components
        (["https:", "", "xkcd.com", "614", ""]); the number is component 3.
      - Anything else, including a missing URL, a non-numeric component, or
        zero, raises ExtractionFailed.

    Example:
      >>> comic_number_from_url("https://xkcd.com/614/")
      614
    """

    parts = str(self_url or "").split("/")
    if len(parts) != 5:
        raise ExtractionFailed(f"unexpected comic URL shape: {self_url!r}")
    segment = parts[3]
    if not _DIGITS.fullmatch(segment):
        raise ExtractionFailed(f"no comic number in URL: {self_url!r}")
    number = int(segment)
    if number <= 0:
        raise ExtractionFailed(f"invalid comic number in URL: {self_url!r}")
    return number
