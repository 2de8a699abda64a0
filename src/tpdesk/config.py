"""Configuration loading."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

from tpdesk.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
API_URL_ENV = "TPDESK_API_URL"

DEFAULT_CONFIG: dict[str, Any] = {
    "api": {
        "base_url": "http://localhost:5000/api",
        "timeout_seconds": 30,
        "mode": "rest",
        "access_token_env": "TPDESK_ACCESS_TOKEN",
        "seed_file": None,
    },
    "tasks": {
        "page_size": 50,
        "search_debounce_seconds": 0.3,
    },
    "projects": {
        "page_size": 20,
    },
    "hooks": {
        "enabled": True,
        "config_file": None,
    },
    "logging": {
        "level": "INFO",
        "file": "./.tpdesk/logs/tpdesk.log",
        "console": False,
    },
}


def merge_config(base: dict, override: dict) -> dict:
    """
    Recursively merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value replaces the base
    value outright.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    load_env: bool = True,
) -> dict:
    """
    Load configuration from a YAML file on top of the defaults.

    A missing file is not an error; the defaults are used. ``TPDESK_API_URL``
    overrides ``api.base_url`` when set.

    Args:
        config_path: YAML file (default: config/default.yaml)
        load_env: Read a ``.env`` file into the environment first

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: File exists but is not valid YAML or not a mapping
    """
    if load_env:
        load_dotenv()

    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    file_config: dict = {}

    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Error loading config {path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        logger.debug(f"Loaded config from {path}")
    else:
        logger.warning(f"Config file not found at {path}, using defaults")

    config = merge_config(DEFAULT_CONFIG, file_config)

    api_url = os.environ.get(API_URL_ENV)
    if api_url:
        config["api"]["base_url"] = api_url

    return config
