"""
Configuration loader — reads relayctl.yml into ManagerSettings.

This is the only place settings are read.  It reads YAML, validates
against the Pydantic schema, and returns one typed settings object
that the entrypoint passes down explicitly.

Lookup order:
    --config PATH  >  RELAYCTL_CONFIG env var  >  /etc/relayctl/relayctl.yml
    (an absent default file is fine: built-in defaults apply)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from relayctl.core.errors import ConfigError
from relayctl.core.models.settings import ManagerSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("/etc/relayctl/relayctl.yml")
CONFIG_ENV_VAR = "RELAYCTL_CONFIG"


def find_config_file(explicit: Path | None = None) -> Path | None:
    """Resolve which settings file to read.

    Args:
        explicit: Path given on the command line, if any.

    Returns:
        The path to read, or None when only defaults apply.
    """
    if explicit is not None:
        return explicit

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    if DEFAULT_CONFIG_FILE.is_file():
        return DEFAULT_CONFIG_FILE

    return None


def load_settings(path: Path | None = None) -> ManagerSettings:
    """Load and validate manager settings.

    Args:
        path: Explicit settings file. If None, ``find_config_file`` decides.

    Returns:
        Validated ManagerSettings.

    Raises:
        ConfigError: If a named file is missing or invalid.
    """
    path = find_config_file(path)
    if path is None:
        logger.debug("No settings file — using built-in defaults")
        return ManagerSettings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = ManagerSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
