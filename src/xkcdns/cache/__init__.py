"""Caches.

Brief: In-memory cache of resolved comics with inactivity-based expiry.

Inputs:
  - None

Outputs:
  - None
"""

from __future__ import annotations

from .expiring import ExpiringCache

__all__ = ["ExpiringCache"]
