"""YAML configuration loader.

Loads the ``bridge:`` section of a YAML file into a BridgeConfig.
Keys not present keep their environment/default value, so a YAML file
only needs to name what it changes.

Example YAML:
    bridge:
      ui_command: confirm-bridge-ui
      timeout_seconds: 1800
      artifact_dir: /var/tmp/confirm-bridge
      stale_artifact_max_age_seconds: 3600
      log_level: DEBUG
"""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import yaml

from .config import BridgeConfig

logger = logging.getLogger(__name__)

_FLOAT_KEYS = (
    "timeout_seconds",
    "probe_timeout_seconds",
    "kill_grace_seconds",
    "stale_artifact_max_age_seconds",
)
_STR_KEYS = ("ui_command", "artifact_dir", "log_level")


def load_yaml_config(
    path: str | Path,
    base: BridgeConfig | None = None,
) -> BridgeConfig:
    """Load and parse a YAML config file.

    *base* supplies values for keys the file does not set (defaults to
    ``BridgeConfig.from_env()``).
    """
    path = Path(path)
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists(),
    )
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: config file not found at %s (absolute path: %s)",
            path, path.absolute(),
        )
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    bridge_raw = raw.get("bridge") or {}
    if not isinstance(bridge_raw, dict):
        raise ValueError(f"{path}: 'bridge' must be a mapping")

    unknown = sorted(set(bridge_raw) - set(_FLOAT_KEYS) - set(_STR_KEYS))
    if unknown:
        logger.warning(
            "load_yaml_config: ignoring unknown bridge keys in %s: %s",
            path.name, ", ".join(unknown),
        )

    overrides: dict[str, object] = {}
    for key in _FLOAT_KEYS:
        if key in bridge_raw:
            overrides[key] = float(bridge_raw[key])
    for key in _STR_KEYS:
        if key in bridge_raw and bridge_raw[key] is not None:
            overrides[key] = str(bridge_raw[key])

    config = replace(base or BridgeConfig.from_env(), **overrides)
    logger.info(
        "Parsed YAML config %s: overrides: %s",
        path.name, ", ".join(sorted(overrides)) if overrides else "(none)",
    )
    return config
