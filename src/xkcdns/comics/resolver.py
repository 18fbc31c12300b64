from __future__ import annotations

import logging
from typing import Callable, Optional

from ..cache.expiring import ExpiringCache
from ..errors import ExtractionFailed, UpstreamUnavailable
from .extractor import ExtractedFields, comic_number_from_url, extract_comic_fields
from .fetcher import ComicFetcher
from .models import Comic, RequestTarget

logger = logging.getLogger(__name__)

DEFAULT_COMIC_URL_TEMPLATE = "https://xkcd.com/{number}/"
DEFAULT_RANDOM_URL = "https://c.xkcd.com/random/comic/"


class ComicResolver:
    """Resolve a RequestTarget into a cached Comic.

    Brief:
      A numbered request is served from the cache when possible. A cache miss,
      or any random request, fetches the comic page, extracts its fields, and
      derives the canonical number from the page itself. The record is then
      stored under that number unless another resolution stored one first, in
      which case the cached record wins and the freshly fetched one is dropped.

    Inputs:
      - cache: ExpiringCache keyed by comic number.
      - fetcher: Object exposing fetch(url) -> FetchResponse.
      - comic_url_template: URL template with a ``{number}`` placeholder.
      - random_url: URL that serves (or redirects to) a random comic.
      - extractor: Callable mapping page bytes to ExtractedFields.

    Outputs:
      - ComicResolver instance.

    Notes:
      - The cache lock is never held while fetching. Two concurrent misses for
        the same comic may both fetch; only one record is ever committed.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        fetcher: ComicFetcher,
        comic_url_template: str = DEFAULT_COMIC_URL_TEMPLATE,
        random_url: str = DEFAULT_RANDOM_URL,
        extractor: Optional[Callable[[bytes], ExtractedFields]] = None,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.comic_url_template = comic_url_template
        self.random_url = random_url
        self._extract = extractor or extract_comic_fields

    def url_for(self, target: RequestTarget) -> str:
        if target.is_random:
            return self.random_url
        return self.comic_url_template.format(number=target.comic_number)

    def resolve(self, target: RequestTarget) -> Comic:
        """Brief: Return the Comic for target, fetching and caching on a miss.

        Inputs:
          - target: RequestTarget (random or by number).

        Outputs:
          - Comic: The cached record for the canonical comic number.

        Raises:
          - FetchFailed: transport error or timeout reaching the site.
          - UpstreamUnavailable: the site answered with a non-200 status.
          - ExtractionFailed: the page has no derivable comic number.
          The cache is not modified when any of these are raised.
        """

        if not target.is_random:
            cached = self.cache.get(target.comic_number)
            if cached is not None:
                logger.debug("Cache hit for comic %d", target.comic_number)
                return cached

        url = self.url_for(target)
        response = self.fetcher.fetch(url)
        if response.status_code != 200:
            raise UpstreamUnavailable(
                f"{url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        comic = self._build_comic(response.body)
        if target.comic_number is not None and comic.number != target.comic_number:
            logger.info(
                "Comic %d page identifies itself as comic %d",
                target.comic_number,
                comic.number,
            )

        stored, inserted = self.cache.get_or_set(comic.number, comic)
        if inserted:
            logger.info("Cached comic %d: %s", comic.number, comic.title)
        else:
            logger.debug(
                "Comic %d already cached; discarding fetched copy", comic.number
            )
        return stored

    def _build_comic(self, body: bytes) -> Comic:
        try:
            fields = self._extract(body)
            number = comic_number_from_url(fields.self_url)
        except ExtractionFailed:
            raise
        except Exception as exc:
            # Extractors must not leak parser errors past the pipeline.
            raise ExtractionFailed(f"failed to extract comic fields: {exc}") from exc
        return Comic(
            number=number,
            title=fields.title,
            image_url=fields.image_src,
            alt_text=fields.alt_text,
        )
