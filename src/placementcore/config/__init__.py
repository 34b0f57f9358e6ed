"""Configuration loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..schemas.config import AppConfig, load_config


def load_settings(path: str | Path | None) -> dict[str, Any]:
    """Load a YAML config file and return container settings."""
    if path is None:
        return {}
    with Path(path).open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return load_config(raw).to_settings()


__all__ = ["AppConfig", "load_settings"]
