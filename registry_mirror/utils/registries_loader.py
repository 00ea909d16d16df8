"""Utility to load registries configuration from YAML file"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from registry_mirror.models.registry_config import RegistriesConfig

logger = logging.getLogger(__name__)


class RegistriesConfigError(ValueError):
    """Raised when registries.yaml is invalid"""


def load_registries_config(config_path: str | Path = "registries.yaml") -> RegistriesConfig:
    """
    Load registries configuration from YAML file

    Args:
        config_path: Path to registries.yaml file (default: registries.yaml in project root)

    Returns:
        RegistriesConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        RegistriesConfigError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Registries configuration file not found: {config_path}\n"
            "Please create one; see registries.yaml in the project root for the format."
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RegistriesConfigError(f"Invalid YAML in registries configuration: {e}") from e

    if not data:
        raise RegistriesConfigError("Registries configuration file is empty")

    try:
        registries_config = RegistriesConfig.model_validate(data)
    except ValidationError as e:
        raise RegistriesConfigError(f"Failed to load registries configuration: {e}") from e

    logger.info(f"Loaded registries configuration from {config_path}")
    logger.info(f"  Enabled registries: {len(registries_config.get_enabled_registries())}")

    return registries_config
