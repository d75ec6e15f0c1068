from __future__ import annotations

import json
import tomllib
from pathlib import Path

import yaml

from .errors import ConfigError

LOADERS = {
    ".toml": tomllib.loads,
    ".yml": yaml.safe_load,
    ".yaml": yaml.safe_load,
    ".json": json.loads,
}
PARSE_ERRORS = (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError)


def load_config(path: Path) -> dict:
    """Read the site settings; a missing file means no settings."""
    if not path.exists():
        return {}
    loader = LOADERS.get(path.suffix.lower(), json.loads)
    try:
        data = loader(path.read_text(encoding="utf-8"))
    except PARSE_ERRORS as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a mapping of settings")
    return {str(key).replace("-", "_"): value for key, value in data.items()}
