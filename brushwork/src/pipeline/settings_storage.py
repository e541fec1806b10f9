"""
Settings persistence layer for named pipeline settings.

Handles save/load of PipelineSettings to ~/.config/brushwork/settings/
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import List, Optional

from .map_pipeline import PipelineSettings

logger = logging.getLogger(__name__)


def get_settings_dir() -> Path:
    """
    Get the directory for storing named settings.

    Returns:
        Path to ~/.config/brushwork/settings/
        Creates the directory if it doesn't exist.
    """
    config_dir = Path.home() / ".config" / "brushwork" / "settings"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def _sanitize_filename(name: str) -> str:
    """
    Sanitize a settings name for use as a filename.

    Args:
        name: The settings name

    Returns:
        A safe filename (lowercase, spaces replaced with underscores, special chars removed)
    """
    safe = name.lower().replace(" ", "_")
    safe = "".join(c for c in safe if c.isalnum() or c in "_-")
    return safe or "default"


def save_settings(settings: PipelineSettings, name: str = "default") -> Path:
    """
    Save settings under a name.

    Returns:
        Path to the saved file

    Raises:
        OSError: If the file cannot be written
    """
    file_path = get_settings_dir() / (_sanitize_filename(name) + ".json")
    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(settings.to_dict(), f, indent=2, ensure_ascii=False)
    logger.debug("Saved settings '%s' to %s", name, file_path)
    return file_path


def load_settings(name: str = "default") -> Optional[PipelineSettings]:
    """
    Load named settings.

    Returns:
        PipelineSettings if found and valid, None otherwise
    """
    return load_settings_from_path(get_settings_dir() / (_sanitize_filename(name) + ".json"))


def load_settings_from_path(file_path: Path) -> Optional[PipelineSettings]:
    """
    Load settings from a specific JSON file.

    Args:
        file_path: Path to the JSON settings file

    Returns:
        PipelineSettings if valid, None otherwise
    """
    file_path = Path(file_path)
    if not file_path.exists():
        return None

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return PipelineSettings.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Ignoring invalid settings file %s: %s", file_path, e)
        return None


def list_saved_settings() -> List[str]:
    """Sorted names of all saved settings files (without .json)."""
    return sorted(p.stem for p in get_settings_dir().glob("*.json"))


def delete_settings(name: str) -> bool:
    """
    Delete saved settings by name.

    Returns:
        True if deleted, False if not found
    """
    file_path = get_settings_dir() / (_sanitize_filename(name) + ".json")
    if file_path.exists():
        file_path.unlink()
        return True
    return False
