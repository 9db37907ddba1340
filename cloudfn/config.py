"""
Process-level configuration: project identity and the defaults file.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError, MetadataComputationError
from .options import set_global_options

logger = logging.getLogger(__name__)

PROJECT_ENV_VAR = "GCLOUD_PROJECT"
CONFIG_FILENAME = "cloudfn.yaml"


def get_project_id() -> str:
    """
    Get the ID of the project functions are deployed to.

    Raises:
        MetadataComputationError: If GCLOUD_PROJECT is unset or empty
    """
    project = os.getenv(PROJECT_ENV_VAR)
    if not project:
        raise MetadataComputationError(
            f"{PROJECT_ENV_VAR} is not set; cannot compute the resource name of the function"
        )
    return project


def find_config_file() -> Optional[Path]:
    """
    Find cloudfn.yaml by searching up from current directory.

    Returns:
        Path to cloudfn.yaml or None if not found
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def load_config_file(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load cloudfn.yaml.

    Args:
        path: Optional path to the file. If not provided, searches up from cwd.

    Returns:
        Parsed YAML content as dict

    Raises:
        FileNotFoundError: If the file is not found
        ConfigurationError: If the file does not hold a mapping
    """
    config_path = Path(path) if path else find_config_file()
    if not config_path or not config_path.exists():
        raise FileNotFoundError(f"{CONFIG_FILENAME} not found")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    logger.debug(f"Loaded configuration from {config_path}")
    return data


def load_global_options(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Set the global options layer from the "options" section of cloudfn.yaml.

    Example cloudfn.yaml:
        options:
          region: us-central1
          memory: 512MiB
          labels:
            team: payments

    Returns:
        The options that were applied
    """
    data = load_config_file(path)
    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise ConfigurationError("'options' in cloudfn.yaml must be a mapping")
    set_global_options(options)
    return options
