"""
Extraction Configuration Module
===============================

Loads the controlled vocabularies and request options sent to the
extraction service from a YAML file. Built-in defaults apply when no
file is found.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_FAMILIES: list[str] = [
    "Ventus", "Gaming", "Twin Edge", "Eagle", "Windforce", "Aero ITX", "Phoenix",
    "Dual", "TUF", "ROG Strix", "XLR8", "Revel", "Uprising", "Epic-X", "AMP",
    "AMP White", "Vision", "XC", "XC Black", "NB", "BattleAx", "iChill", "EX",
    "EXOC", "SG", "Ultra", "White Edition", "Sakura", "Cute Edition", "Trio",
]

DEFAULT_SPECIAL_FEATURES: list[str] = [
    "IceStorm", "IceStorm 2.0", "FireStorm Software", "FREEZE Fan Stop",
    "Active Fan Control", "Axial-Tech Fans", "0dB Technology", "MaxContact",
    "AURA Sync RGB", "Dual BIOS", "Torx Fan 3.0", "Torx Fan 4.0", "Twin Frozr",
    "Zero Frozr", "TRI FROZR 2", "Core Pipe", "Mystic Light RGB",
    "Windforce Cooling", "Alternate Spinning", "3D Active Fan", "Screen Cooling",
    "RGB Fusion", "EPIC-X RGB", "iGame Center", "FrostBlade Fans",
]

DEFAULT_SCRAPE_OPTIONS: dict[str, Any] = {
    "formats": ["markdown"],
    "onlyMainContent": True,
    "skipTlsVerification": True,
    "blockAds": True,
}


@dataclass
class ExtractionConfig:
    """Vocabularies and request options for extraction jobs."""

    families: list[str] = field(default_factory=lambda: list(DEFAULT_FAMILIES))
    special_features: list[str] = field(default_factory=lambda: list(DEFAULT_SPECIAL_FEATURES))
    scrape_options: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SCRAPE_OPTIONS))
    enable_web_search: bool = False
    ignore_invalid_urls: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExtractionConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            families=list(data.get("families") or DEFAULT_FAMILIES),
            special_features=list(data.get("special_features") or DEFAULT_SPECIAL_FEATURES),
            scrape_options=dict(data.get("scrape_options") or DEFAULT_SCRAPE_OPTIONS),
            enable_web_search=bool(data.get("enable_web_search", False)),
            ignore_invalid_urls=bool(data.get("ignore_invalid_urls", True)),
        )

    @classmethod
    def load(cls, config_path: Path | str) -> ExtractionConfig:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the extraction.yaml file
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("extraction"))


# Global configuration instance
_default_config: ExtractionConfig | None = None


def get_extraction_config(config_path: Path | str | None = None) -> ExtractionConfig:
    """
    Get the default extraction configuration.

    Loads configuration from the given path, the EXTRACTION_CONFIG_PATH
    environment variable, or config/extraction.yaml in the project root.

    Returns:
        The global ExtractionConfig instance
    """
    global _default_config

    if _default_config is None:
        if config_path is None:
            config_path = os.environ.get("EXTRACTION_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            path = project_root / "config" / "extraction.yaml"

        _default_config = ExtractionConfig.load(path) if path.exists() else ExtractionConfig()

    return _default_config


def reset_extraction_config() -> None:
    """Reset the default configuration (useful for testing)."""
    global _default_config
    _default_config = None
