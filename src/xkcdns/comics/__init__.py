"""Comic resolution: fetching, field extraction, and the caching pipeline."""

from __future__ import annotations

from .models import Comic, ComicRequest, FieldSelector, RequestTarget
from .resolver import ComicResolver

__all__ = [
    "Comic",
    "ComicRequest",
    "ComicResolver",
    "FieldSelector",
    "RequestTarget",
]
