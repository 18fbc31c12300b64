"""
Brief: Logging setup for xkcdns: bracketed level tags, UTC timestamps, and
stderr / file / syslog sinks chosen by the `logging` config group.

Inputs:
  - None

Outputs:
  - init_logging, BracketLevelFormatter, SyslogFormatter
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

DEFAULT_SYSLOG_ADDRESS = "/dev/log"
DEFAULT_SYSLOG_TAG = "xkcdns"
LINE_FORMAT = "%(asctime)s %(level_tag)s %(name)s: %(message)s"

# HTTP client loggers that chatter at INFO on every comic page fetch.
NOISY_LOGGERS = ("urllib3", "requests")

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_SHORT_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "crit",
}


def level_tag(levelno: int) -> str:
    """
    Brief: Bracketed lowercase tag for a numeric level, e.g. "[warn]".

    Inputs:
      - levelno: logging level number

    Outputs:
      - str: "[<name>]", or "[lvl<N>]" for custom levels
    """
    return "[%s]" % _SHORT_NAMES.get(levelno, f"lvl{levelno}")


def resolve_level(name: Any) -> int:
    """Map a config level name to a logging level; unknown names mean INFO."""
    return _LEVEL_NAMES.get(str(name or "info").strip().lower(), logging.INFO)


class BracketLevelFormatter(logging.Formatter):
    """Line formatter with an ISO-8601 UTC timestamp and a bracketed level tag."""

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, timezone.utc)
        return stamp.strftime("%Y-%m-%dT%H:%M:%SZ")

    def format(self, record):
        record.level_tag = level_tag(record.levelno)
        return super().format(record)


class SyslogFormatter(logging.Formatter):
    """Syslog line: "<tag>: [level] logger: message". The daemon stamps the time."""

    def __init__(self, tag: str = DEFAULT_SYSLOG_TAG) -> None:
        super().__init__()
        self.tag = tag

    def format(self, record):
        record.level_tag = level_tag(record.levelno)
        body = f"{record.level_tag} {record.name}: {record.getMessage()}"
        return f"{self.tag}: {body}" if self.tag else body


def _file_handler(path: str, formatter: logging.Formatter) -> logging.Handler:
    """
    Brief: Append-mode UTF-8 file handler, creating the parent directory.

    Inputs:
      - path: log file path; "~" is expanded
      - formatter: formatter for the handler

    Outputs:
      - logging.FileHandler
    """
    full = os.path.abspath(os.path.expanduser(path))
    os.makedirs(os.path.dirname(full), exist_ok=True)
    handler = logging.FileHandler(full, mode="a", encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _syslog_handler(syslog_cfg: Union[bool, Dict[str, Any]]) -> logging.Handler:
    """
    Brief: Build a SysLogHandler from `logging.syslog`.

    Inputs:
      - syslog_cfg: True for defaults, or a mapping with optional address
        (socket path or [host, port]), facility name, and tag

    Outputs:
      - logging.handlers.SysLogHandler; raises OSError/ValueError when the
        syslog endpoint cannot be opened
    """
    handler_cls = logging.handlers.SysLogHandler
    opts = syslog_cfg if isinstance(syslog_cfg, dict) else {}

    address = opts.get("address", DEFAULT_SYSLOG_ADDRESS)
    if isinstance(address, list):
        address = tuple(address)
    facility_name = "LOG_" + str(opts.get("facility", "user")).upper()
    facility = getattr(handler_cls, facility_name, handler_cls.LOG_USER)

    handler = handler_cls(address=address, facility=facility)
    handler.setFormatter(SyslogFormatter(tag=str(opts.get("tag", DEFAULT_SYSLOG_TAG))))
    return handler


def _quiet_library_loggers(level: int) -> None:
    """HTTP client loggers stay at WARNING unless xkcdns itself runs at DEBUG."""
    lib_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(lib_level)


def init_logging(cfg: Optional[Dict[str, Any]]) -> None:
    """
    Brief: Replace the root logger's sinks according to the `logging` config group.

    Inputs:
      - cfg: mapping with optional keys
          level: debug, info, warn, error, crit (default info)
          stderr: log to stderr (default True)
          file: path of an append-mode log file
          syslog: True, or {"address": ..., "facility": ..., "tag": ...}

    Outputs:
      - None. Python warnings are routed through logging afterwards.

    Example:
      >>> init_logging({"level": "debug", "stderr": True})
    """
    cfg = cfg or {}
    level = resolve_level(cfg.get("level"))
    formatter = BracketLevelFormatter(fmt=LINE_FORMAT)

    handlers: List[logging.Handler] = []
    if cfg.get("stderr", True):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        handlers.append(stream)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        handlers.append(_file_handler(file_path.strip(), formatter))

    syslog_error = None
    if cfg.get("syslog"):
        try:
            handlers.append(_syslog_handler(cfg["syslog"]))
        except (OSError, ValueError) as e:
            syslog_error = e

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    _quiet_library_loggers(level)
    logging.captureWarnings(True)

    if syslog_error is not None:
        # Reported once the other sinks exist so the message is not lost.
        logging.getLogger(__name__).warning(
            "Failed to configure syslog: %s", syslog_error
        )
