"""
Loading and saving prediction settings as JSON documents.

A settings document is a flat JSON object. Every field can be overridden
on its own; fields that are missing or invalid keep the value of the base
settings. A missing or unreadable file never blocks estimation: the base
settings are returned and the problem is logged.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from .settings import PredictionSettings, settings_from_dict, settings_to_dict

logger = logging.getLogger(__name__)


def load_settings(path: Union[str, Path],
                  base: Optional[PredictionSettings] = None) -> PredictionSettings:
    """
    Load settings from a JSON document.

    Args:
        path: Path of the JSON settings document
        base: Settings providing the values of unset fields (defaults if None)

    Returns:
        Loaded settings, or ``base`` if the document cannot be used
    """
    base = base or PredictionSettings()
    try:
        with open(path, encoding='utf-8') as f:
            document = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Settings file {path} does not exist, using defaults")
        return base
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read settings file {path}: {e}, using defaults")
        return base

    if not isinstance(document, dict):
        logger.warning(f"Settings file {path} does not hold a JSON object, using defaults")
        return base

    logger.info(f"Loaded settings from {path}")
    return settings_from_dict(document, base)


def save_settings(settings: PredictionSettings, path: Union[str, Path]) -> None:
    """Write settings as a flat JSON document."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings_to_dict(settings), f, indent=2, ensure_ascii=False)
    logger.info(f"Saved settings to {path}")
