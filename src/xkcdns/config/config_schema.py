"""Typed configuration models for the xkcdns YAML config.

Brief:
  Each top-level group of ``config.yaml`` has a pydantic model with defaults,
  so an empty file (or no file at all) yields a working configuration.

Inputs:
  - Parsed YAML mappings.

Outputs:
  - AppConfig instances with normalized field values.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..cache.expiring import DEFAULT_EXPIRY_SECONDS, DEFAULT_SWEEP_INTERVAL_SECONDS
from ..comics.resolver import DEFAULT_COMIC_URL_TEMPLATE, DEFAULT_RANDOM_URL
from ..servers.classifier import DEFAULT_ZONE, normalize_zone


class ListenConfig(BaseModel):
    """Brief: Listener addresses.

    Inputs:
      - host: Address to bind UDP (and TCP) listeners on.
      - port: Port shared by the UDP and TCP listeners.
      - tcp: Whether to also serve DNS over TCP.
      - max_udp_payload: Largest UDP response sent to EDNS(0) clients.

    Outputs:
      - ListenConfig instance.
    """

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=5353, ge=0, le=65535)
    tcp: bool = Field(default=True)
    max_udp_payload: int = Field(default=1232, ge=512, le=65535)

    model_config = ConfigDict(extra="forbid")


class UpstreamConfig(BaseModel):
    """Brief: Where and how comic pages are fetched.

    Inputs:
      - comic_url_template: Page URL for a numbered comic; must contain
        ``{number}``.
      - random_url: URL serving (or redirecting to) a random comic.
      - timeout_ms: Per-request HTTP timeout in milliseconds.
      - user_agent: Optional User-Agent override.

    Outputs:
      - UpstreamConfig instance.
    """

    comic_url_template: str = Field(default=DEFAULT_COMIC_URL_TEMPLATE)
    random_url: str = Field(default=DEFAULT_RANDOM_URL)
    timeout_ms: int = Field(default=5000, ge=1)
    user_agent: Optional[str] = Field(default=None)

    model_config = ConfigDict(extra="forbid")

    @field_validator("comic_url_template")
    @classmethod
    def _require_number_placeholder(cls, v: str) -> str:
        if "{number}" not in v:
            raise ValueError("comic_url_template must contain a {number} placeholder")
        return v

    @field_validator("random_url", "comic_url_template")
    @classmethod
    def _require_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("upstream URLs must start with http:// or https://")
        return v


class CacheConfig(BaseModel):
    """Brief: Comic cache expiry settings (seconds)."""

    expiry_seconds: float = Field(default=DEFAULT_EXPIRY_SECONDS, ge=0)
    sweep_interval_seconds: float = Field(default=DEFAULT_SWEEP_INTERVAL_SECONDS, gt=0)

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    """Brief: Logging options passed to init_logging().

    Inputs:
      - level: debug, info, warn, error, crit.
      - stderr: Log to stderr.
      - file: Optional log file path.
      - syslog: False, True, or a mapping with address/facility.

    Outputs:
      - LoggingConfig instance.
    """

    level: str = Field(default="info")
    stderr: bool = Field(default=True)
    file: Optional[str] = Field(default=None)
    syslog: Union[bool, Dict[str, Any]] = Field(default=False)

    model_config = ConfigDict(extra="forbid")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> str:
        text = str(v or "info").strip().lower()
        if text not in {"debug", "info", "warn", "warning", "error", "crit", "critical"}:
            raise ValueError(f"unknown logging level {v!r}")
        return text


class AppConfig(BaseModel):
    """Brief: Top-level configuration.

    Inputs:
      - zone: Parent zone answered by the server (e.g. "xkcd.").
      - listen / upstream / cache / logging: Nested groups.

    Outputs:
      - AppConfig instance.
    """

    zone: str = Field(default=DEFAULT_ZONE)
    listen: ListenConfig = Field(default_factory=ListenConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")

    @field_validator("zone", mode="before")
    @classmethod
    def _normalize_zone(cls, v: object) -> str:
        return normalize_zone(str(v or ""))
