"""Load ~/.icecache.config (TOML) with env-var overrides."""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]  # Python < 3.11 backport

from icecache.errors import ConfigError

CONFIG_ENV = "ICECACHE_CONFIG_PATH"
DB_PATH_ENV = "ICECACHE_DB_PATH"

_DEFAULT: dict[str, dict[str, Any]] = {
    "store": {
        "db_path": "",
    },
    "scan": {
        "root": "",
        "excluded_dirs": [],
        "commit_batch_size": 500,
        "stat_short_circuit": True,
        "prune_missing": False,
        "chunk_size_mb": 8,
    },
}


def default_db_path() -> str:
    return str(Path.home() / ".icecache" / "cache.duckdb")


def config_path() -> Path:
    """ICECACHE_CONFIG_PATH if set, otherwise ~/.icecache.config."""
    override = os.environ.get(CONFIG_ENV)
    return Path(override) if override else Path.home() / ".icecache.config"


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e


def load_config() -> dict[str, dict[str, Any]]:
    """
    Return the effective config: defaults, then the config file, then env vars.

    Sections are tables of scalar or list values, so a file section is applied
    over its default section key by key. Unknown sections are kept as-is.
    """
    path = config_path()
    cfg = copy.deepcopy(_DEFAULT)
    for section, values in _read_file(path).items():
        if section not in cfg:
            cfg[section] = values
        elif isinstance(values, dict):
            cfg[section].update(values)
        else:
            raise ConfigError(f"{path}: [{section}] must be a table")

    if os.environ.get(DB_PATH_ENV):
        cfg["store"]["db_path"] = os.environ[DB_PATH_ENV]
    return cfg


_config: dict[str, dict[str, Any]] | None = None


def get_config() -> dict[str, dict[str, Any]]:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_store_config() -> dict[str, Any]:
    return get_config()["store"]


def get_scan_config() -> dict[str, Any]:
    return get_config()["scan"]


def get_db_path() -> str:
    return get_store_config().get("db_path") or default_db_path()
