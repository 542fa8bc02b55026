"""
Settings for the build import core.

The surrounding application owns its own configuration UI and storage; this
module only defines the knobs the core reads and how to load them from a JSON
file layered over defaults.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from buildcore.constants import (
    DEFAULT_TREE_VERSION,
    FETCH_TIMEOUT_DEFAULT,
    MAX_CODE_SIZE,
    MAX_XML_SIZE,
)

logger = logging.getLogger(__name__)


def get_default_tree_data_dir() -> Path:
    """Directory holding processed tree datasets ({version}_processed.json)."""
    return Path(__file__).parent.parent / "data" / "trees"


# NOTE: treated as immutable, always deep copy before merging.
DEFAULT_SETTINGS: Dict[str, Any] = {
    "network": {
        "fetch_timeout": FETCH_TIMEOUT_DEFAULT,
    },
    "limits": {
        "max_code_size": MAX_CODE_SIZE,
        "max_xml_size": MAX_XML_SIZE,
    },
    "trees": {
        "data_dir": None,  # None = bundled data/trees directory
        "default_version": DEFAULT_TREE_VERSION,
        "versions": ["3_25", "3_26"],
    },
}


@dataclass(frozen=True)
class ImportSettings:
    """Resolved settings consumed by the decoder and tree registry."""
    fetch_timeout: float = FETCH_TIMEOUT_DEFAULT
    max_code_size: int = MAX_CODE_SIZE
    max_xml_size: int = MAX_XML_SIZE
    tree_data_dir: Optional[Path] = None
    default_tree_version: str = DEFAULT_TREE_VERSION
    tree_versions: Tuple[str, ...] = ("3_25", "3_26")

    @property
    def resolved_tree_data_dir(self) -> Path:
        return self.tree_data_dir or get_default_tree_data_dir()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportSettings":
        """Build settings from a (possibly partial) settings dict."""
        merged = _merge(copy.deepcopy(DEFAULT_SETTINGS), data)

        data_dir = merged["trees"].get("data_dir")
        timeout = float(merged["network"]["fetch_timeout"])
        if timeout <= 0:
            logger.warning(f"Ignoring non-positive fetch timeout {timeout}, using default")
            timeout = FETCH_TIMEOUT_DEFAULT

        return cls(
            fetch_timeout=timeout,
            max_code_size=int(merged["limits"]["max_code_size"]),
            max_xml_size=int(merged["limits"]["max_xml_size"]),
            tree_data_dir=Path(data_dir) if data_dir else None,
            default_tree_version=str(merged["trees"]["default_version"]),
            tree_versions=tuple(str(v) for v in merged["trees"]["versions"]),
        )


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base (in place) and return base."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_settings(path: Optional[Path] = None) -> ImportSettings:
    """
    Load settings from a JSON file, falling back to defaults.

    A missing or unreadable file is not an error: defaults are returned and
    the problem is logged.
    """
    if path is None or not path.exists():
        return ImportSettings.from_dict({})

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load settings from {path}: {e}")
        return ImportSettings.from_dict({})

    if not isinstance(data, dict):
        logger.error(f"Settings file {path} does not contain an object, using defaults")
        return ImportSettings.from_dict({})

    logger.info(f"Loaded import settings from {path}")
    return ImportSettings.from_dict(data)
