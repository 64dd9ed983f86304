"""
Settings and Logging
=====================
Project-wide configuration helpers.

Settings live in ``configs/settings.yaml`` at the repository root.  The
path can be overridden with the ``SENTENCE_EMBEDDER_SETTINGS`` environment
variable, which is how deployments point at their own model directory.

Logging uses the standard library: every module owns a
``logging.getLogger(__name__)`` logger and the application calls
``setup_logging()`` once at startup.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# Path to the project settings file
SETTINGS_PATH = Path(__file__).resolve().parent.parent / "configs" / "settings.yaml"
SETTINGS_ENV_VAR = "SENTENCE_EMBEDDER_SETTINGS"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def setup_logging(verbose: bool = False) -> None:
    """Configure root logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)


def resolve_settings_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit argument, then environment variable, then the bundled file."""
    if path:
        return Path(path)
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)
    return SETTINGS_PATH


def load_settings(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load settings from a YAML file.

    Returns:
        The parsed YAML as a dict, or empty dict if the file is missing
        or unreadable.
    """
    settings_path = resolve_settings_path(path)
    if not settings_path.exists():
        logger.warning("Settings file not found: %s", settings_path)
        return {}
    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to read settings %s: %s", settings_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings file %s is not a mapping, ignoring", settings_path)
        return {}
    return data


def section(settings: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return ``settings[name]`` as a dict (empty when absent or null)."""
    value = settings.get(name) or {}
    return value if isinstance(value, dict) else {}
