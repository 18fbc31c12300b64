from __future__ import annotations

import re
from typing import Tuple

from ..comics.models import ComicRequest, FieldSelector, RequestTarget
from ..errors import InvalidRequest

DEFAULT_ZONE = "xkcd."

_DIGITS = re.compile(r"[0-9]+")


def normalize_zone(zone: str) -> str:
    """Brief: Lowercase a zone name and ensure a single trailing dot.

    Inputs:
      - zone: Zone name such as "xkcd" or "XKCD.".

    Outputs:
      - str: Normalized zone ("xkcd.").
    """

    text = str(zone or "").strip().lower().rstrip(".")
    if not text:
        raise ValueError("zone must be a non-empty domain name")
    return text + "."


def _zone_labels(zone: str) -> Tuple[str, ...]:
    return tuple(p for p in normalize_zone(zone).rstrip(".").split("."))


def _parse_number(label: str, qname: str) -> RequestTarget:
    if not _DIGITS.fullmatch(label):
        raise InvalidRequest(f"not a comic number: {label!r} in {qname!r}")
    number = int(label)
    if number <= 0:
        raise InvalidRequest(f"comic numbers start at 1: {qname!r}")
    return RequestTarget.by_number(number)


def _parse_selector(label: str, qname: str) -> FieldSelector:
    selector = FieldSelector.from_label(label)
    if selector is None:
        raise InvalidRequest(f"unknown field selector {label!r} in {qname!r}")
    return selector


def classify_query(qname: str, zone: str = DEFAULT_ZONE) -> ComicRequest:
    """Brief: Classify a query name into a comic target and field selector.

    Inputs:
      - qname: Query name, e.g. "img.42.xkcd." (trailing dot optional).
      - zone: Parent zone the server answers for.

    Outputs:
      - ComicRequest(target, selector).

    Recognized forms (zone "xkcd."):
      - "xkcd."              -> (random, ALL)
      - "title.xkcd."        -> (random, TITLE); also "img", "alt"
      - "42.xkcd."           -> (42, ALL)
      - "alt.42.xkcd."       -> (42, ALT_TEXT)

    Raises:
      - InvalidRequest for every other shape: names outside the zone, more
        than two labels below the zone, non-numeric or zero numbers, and
        unknown selector keywords. Nothing is guessed.

    Example:
      >>> classify_query("img.42.xkcd.").selector
      <FieldSelector.IMAGE: 'img'>
    """

    text = str(qname or "").strip().lower().rstrip(".")
    labels = tuple(p for p in text.split(".")) if text else ()
    suffix = _zone_labels(zone)

    if len(labels) < len(suffix) or labels[len(labels) - len(suffix) :] != suffix:
        raise InvalidRequest(f"{qname!r} is not under zone {normalize_zone(zone)!r}")

    rel = labels[: len(labels) - len(suffix)]
    if any(not label for label in rel):
        raise InvalidRequest(f"empty label in {qname!r}")

    if len(rel) == 0:
        return ComicRequest(RequestTarget.random(), FieldSelector.ALL)

    if len(rel) == 1:
        label = rel[0]
        # A lone label is either a selector keyword or a comic number.
        selector = FieldSelector.from_label(label)
        if selector is not None:
            return ComicRequest(RequestTarget.random(), selector)
        return ComicRequest(_parse_number(label, qname), FieldSelector.ALL)

    if len(rel) == 2:
        selector_label, number_label = rel
        return ComicRequest(
            _parse_number(number_label, qname),
            _parse_selector(selector_label, qname),
        )

    raise InvalidRequest(f"too many labels in {qname!r}")
