from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Comic:
    """Brief: A resolved comic record as stored in the cache.

    Inputs (fields):
      - number: Canonical comic number derived from the fetched page itself.
      - title: Comic title text.
      - image_url: Absolute URL of the comic image (empty for interactive comics).
      - alt_text: Hover text of the comic image.

    Outputs:
      - Immutable Comic instance. Random and numbered lookups that land on the
        same page converge on the same ``number``.
    """

    number: int
    title: str
    image_url: str
    alt_text: str


class FieldSelector(enum.Enum):
    """Which fields of a Comic a query asks for."""

    TITLE = "title"
    IMAGE = "img"
    ALT_TEXT = "alt"
    ALL = "all"

    @classmethod
    def from_label(cls, label: str) -> Optional["FieldSelector"]:
        """Brief: Map a query label keyword to a selector.

        Inputs:
          - label: Lowercased DNS label (e.g. "title", "img", "alt").

        Outputs:
          - FieldSelector for the recognized keywords, or None. "all" is not a
            query keyword; it is implied when no selector label is present.
        """

        for member in (cls.TITLE, cls.IMAGE, cls.ALT_TEXT):
            if member.value == label:
                return member
        return None


@dataclass(frozen=True)
class RequestTarget:
    """Brief: Which comic a query refers to.

    Inputs (fields):
      - comic_number: Positive comic number, or None for a random comic.

    Outputs:
      - RequestTarget instance.

    Example:
      >>> RequestTarget.random().is_random
      True
      >>> RequestTarget.by_number(42).comic_number
      42
    """

    comic_number: Optional[int] = None

    def __post_init__(self) -> None:
        if self.comic_number is not None and self.comic_number <= 0:
            raise ValueError("comic_number must be a positive integer")

    @classmethod
    def random(cls) -> "RequestTarget":
        return cls(None)

    @classmethod
    def by_number(cls, number: int) -> "RequestTarget":
        return cls(int(number))

    @property
    def is_random(self) -> bool:
        return self.comic_number is None

    def __str__(self) -> str:
        return "random" if self.comic_number is None else str(self.comic_number)


@dataclass(frozen=True)
class ComicRequest:
    """Classified query: the target comic plus the requested field subset."""

    target: RequestTarget
    selector: FieldSelector
