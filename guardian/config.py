"""Scan configuration file loading for Guardian."""

import logging
import os
from typing import Any

import yaml

from .models import ConfigError, ScanConfig, Severity

logger = logging.getLogger(__name__)

CONFIG_FILE = os.path.join(".securecode", "config.yaml")

_LIST_KEYS = {
    "include": "include_patterns",
    "exclude": "exclude_patterns",
    "enabledRules": "enabled_rules",
    "disabledRules": "disabled_rules",
}


def default_config_path(root: str) -> str:
    return os.path.join(root, CONFIG_FILE)


def parse_scan_config(data: dict[str, Any], base: ScanConfig | None = None) -> ScanConfig:
    """Overlay the keys present in data onto base (defaults if None)."""
    config = base or ScanConfig()

    for key, attr in _LIST_KEYS.items():
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{key}' must be a list of strings")
        setattr(config, attr, list(value))

    if "customRulesPath" in data:
        if not isinstance(data["customRulesPath"], str):
            raise ConfigError("'customRulesPath' must be a string")
        config.custom_rules_path = data["customRulesPath"]

    if "minSeverity" in data:
        try:
            config.min_severity = Severity.parse(data["minSeverity"])
        except ValueError as e:
            raise ConfigError(str(e)) from e

    unknown = set(data) - set(_LIST_KEYS) - {"customRulesPath", "minSeverity"}
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

    return config


def load_scan_config(path: str) -> ScanConfig:
    """Load a ScanConfig from a YAML file.

    A missing file gives the defaults. An unreadable or malformed file
    raises ConfigError.
    """
    if not os.path.isfile(path):
        logger.debug("No config file at %s, using defaults", path)
        return ScanConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}") from e

    if data is None:
        return ScanConfig()
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file must be a YAML mapping (object), got {type(data).__name__}: {path}"
        )
    return parse_scan_config(data)
