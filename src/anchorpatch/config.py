"""
anchorpatch configuration

Loads config from:
  1. Defaults
  2. Global config (CLI --config or ~/.anchorpatch/config.json)
  3. Workspace override (<workspace>/.anchorpatch/config.json)
  4. Environment variables

The global layer is user-scoped (node binary, log level). The workspace layer
is repo-scoped: where the pristine reference build lives, where patched
output goes, which batches run and in what order.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Optional

from anchorpatch.artifact import DEFAULT_LAYOUT
from anchorpatch.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "reference_dir": None,
    "output_dir": ".",
    "artifacts": dict(DEFAULT_LAYOUT),
    "batches": [
        "windows-main",
        "process-detection",
        "startup-reliability",
        "path-normalization",
        "color-palette",
    ],
    "manifests": [],
    "fresh": True,
    "node": {
        "binary": "node",
        "timeout_seconds": 60,
    },
    "log_level": "WARNING",
}

# A layer that names its artifacts defines the whole layout.
REPLACED_SECTIONS = ("artifacts",)

ENV_OVERRIDES = {
    "ANCHORPATCH_REFERENCE_DIR": ("reference_dir",),
    "ANCHORPATCH_OUTPUT_DIR": ("output_dir",),
    "ANCHORPATCH_NODE": ("node", "binary"),
    "ANCHORPATCH_LOG_LEVEL": ("log_level",),
}


def config_home() -> Path:
    home = os.environ.get("ANCHORPATCH_HOME")
    return Path(home) if home else Path.home() / ".anchorpatch"


def load_config(config_path: Optional[Path] = None, workspace: Optional[Path] = None) -> dict:
    """Load anchorpatch config.

    `config_path` (CLI --config) is treated as the global user config layer.
    If absent, $ANCHORPATCH_HOME/config.json or ~/.anchorpatch/config.json is
    used. An explicit `config_path` that does not exist is an error.

    If `workspace` is provided, <workspace>/.anchorpatch/config.json is
    loaded on top, and relative `reference_dir` / `output_dir` / manifest
    paths are resolved against the workspace.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    # Tests must not depend on a real ~/.anchorpatch existing.
    is_pytest = bool(os.environ.get("PYTEST_CURRENT_TEST"))

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        global_path: Optional[Path] = config_path
    elif is_pytest:
        global_path = None
    else:
        global_path = config_home() / "config.json"

    if global_path is not None and global_path.exists():
        config = _merge(config, _read_json(global_path))
        log.debug("Loaded config from %s", global_path)

    if workspace is not None:
        ws_config_path = Path(workspace) / ".anchorpatch" / "config.json"
        if ws_config_path.exists():
            config = _merge(config, _read_json(ws_config_path))
            log.debug("Loaded workspace config from %s", ws_config_path)

    _apply_env_overrides(config)
    _validate(config)
    if workspace is not None:
        _resolve_paths(config, Path(workspace))
    return config


def _read_json(path: Path) -> dict:
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a JSON object")
    return data


def _merge(base: dict, override: dict) -> dict:
    """Deep merge override into base. ``REPLACED_SECTIONS`` are swapped whole."""
    result = base.copy()
    for key, value in override.items():
        if key in REPLACED_SECTIONS:
            result[key] = copy.deepcopy(value)
        elif key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict) -> None:
    for env_name, keys in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        section = config
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value


def _validate(config: dict) -> None:
    if not isinstance(config.get("artifacts"), dict) or not config["artifacts"]:
        raise ConfigError("'artifacts' must map artifact ids to relative paths")
    for key in ("batches", "manifests"):
        if not isinstance(config.get(key), list):
            raise ConfigError(f"'{key}' must be a list")
    try:
        config["node"]["timeout_seconds"] = float(config["node"]["timeout_seconds"])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid node.timeout_seconds: {e}") from e
    level = str(config.get("log_level", "WARNING")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Unknown log_level: {config.get('log_level')!r}")
    config["log_level"] = level


def _resolve_paths(config: dict, workspace: Path) -> None:
    for key in ("reference_dir", "output_dir"):
        value = config.get(key)
        if value and not Path(value).is_absolute():
            config[key] = str(workspace / value)
    config["manifests"] = [
        str(p) if Path(p).is_absolute() else str(workspace / p)
        for p in config["manifests"]
    ]
