"""Configuration parsing helpers for xkcdns.

Brief:
  Reads the YAML config file, validates it against the pydantic models in
  config_schema, and applies CLI overrides.

Inputs:
  - YAML config paths and parsed mappings

Outputs:
  - AppConfig instances
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig


def _format_validation_error(exc: ValidationError, config_path: Optional[str]) -> str:
    """Brief: Render a pydantic ValidationError as readable lines.

    Inputs:
      - exc: ValidationError raised by AppConfig.
      - config_path: Path shown in the header line (optional).

    Outputs:
      - str: "Invalid configuration in <path>:" followed by one
        "  - a.b.c: message" line per error.
    """

    where = f" in {config_path}" if config_path else ""
    lines = [f"Invalid configuration{where}:"]
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        lines.append(f"  - {loc}: {err.get('msg', 'invalid value')}")
    return "\n".join(lines)


def parse_config(
    cfg: Optional[Dict[str, Any]], config_path: Optional[str] = None
) -> AppConfig:
    """Brief: Validate a parsed YAML mapping into an AppConfig.

    Inputs:
      - cfg: Mapping loaded from YAML (None is treated as empty).
      - config_path: Optional path used in error messages.

    Outputs:
      - AppConfig.

    Raises:
      - ValueError with a readable, multi-line message on invalid config.
    """

    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ValueError(
            f"Invalid configuration in {config_path or '<config>'}: top level must be a mapping"
        )
    try:
        return AppConfig(**cfg)
    except ValidationError as exc:
        raise ValueError(_format_validation_error(exc, config_path)) from exc


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Brief: Load and validate the YAML config file.

    Inputs:
      - config_path: Path to a YAML file, or None for built-in defaults.

    Outputs:
      - AppConfig.

    Raises:
      - ValueError when the file is unreadable, is not valid YAML, or fails
        validation.

    Example:
      >>> load_config(None).zone
      'xkcd.'
    """

    if config_path is None:
        return parse_config({})

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise ValueError(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc
    return parse_config(raw, config_path=config_path)


def apply_overrides(
    cfg: AppConfig,
    *,
    log_level: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> AppConfig:
    """Brief: Return a copy of cfg with CLI overrides applied and re-validated.

    Inputs:
      - cfg: Loaded AppConfig.
      - log_level / host / port: Optional CLI values; None leaves the config
        value untouched.

    Outputs:
      - AppConfig.
    """

    data = cfg.model_dump()
    if log_level is not None:
        data["logging"]["level"] = log_level
    if host is not None:
        data["listen"]["host"] = host
    if port is not None:
        data["listen"]["port"] = port
    return parse_config(data)
