"""Application configuration loader.

Loads centralized configuration from data/config/exambank_v1.yaml,
falling back to built-in defaults when the file does not exist.

Usage:
    from exambank.config.app_config import load_app_config

    config = load_app_config()
    ratio = config.standard_ratio
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from exambank.core.distribution import STANDARD_RATIO, Ratio
from exambank.core.exam_composer import MATRIX_RATIO
from exambank.core.models import Difficulty, ExamMode

logger = structlog.get_logger(__name__)

# Config file path (relative to the data directory)
CONFIG_FILE = Path("data/config/exambank_v1.yaml")


@dataclass(frozen=True)
class ExamPreset:
    """A duration/question-count pair offered to the user."""

    minutes: int
    questions: int

    @property
    def label(self) -> str:
        return f"{self.minutes} min"


@dataclass
class RatingConfig:
    """Percentage thresholds for the qualitative rating."""

    excellent: int = 80
    passing: int = 50


@dataclass
class ExamDefaults:
    """Defaults for a new composition request."""

    mode: ExamMode = ExamMode.STANDARD
    minutes: int = 45
    questions: int = 30


@dataclass
class AppConfig:
    """Application-wide configuration."""

    standard_ratio: Ratio = STANDARD_RATIO
    matrix_ratio: dict[Difficulty, int] = field(default_factory=lambda: dict(MATRIX_RATIO))
    presets: list[ExamPreset] = field(default_factory=list)
    defaults: ExamDefaults = field(default_factory=ExamDefaults)
    rating: RatingConfig = field(default_factory=RatingConfig)
    paths: dict[str, str] = field(default_factory=dict)

    def history_path(self, data_dir: Path | None = None) -> Path:
        """History file location, relative paths resolved against data_dir."""
        path = Path(self.paths.get("history_file", "history/sessions_v1.json"))
        if path.is_absolute() or data_dir is None:
            return path
        return data_dir / path


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "standard_ratio": {"recall": 50, "comprehension": 30, "application": 20},
        "matrix_ratio": {
            "recall": 40,
            "comprehension": 30,
            "application": 20,
            "high_application": 10,
        },
        "presets": [
            {"minutes": 15, "questions": 10},
            {"minutes": 30, "questions": 20},
            {"minutes": 45, "questions": 30},
            {"minutes": 60, "questions": 40},
            {"minutes": 90, "questions": 50},
        ],
        "defaults": {"mode": "Standard", "minutes": 45, "questions": 30},
        "rating": {"excellent": 80, "passing": 50},
        "paths": {"history_file": "history/sessions_v1.json"},
    }


def _merge(defaults: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Overlay file values on defaults, one level deep for mapping sections."""
    result = dict(defaults)
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = {**result[key], **value}
        else:
            result[key] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object.

    Raises:
        ValueError: If a section holds invalid values
    """
    ratio_data = data.get("standard_ratio", {})
    standard_ratio = Ratio(
        recall=int(ratio_data["recall"]),
        comprehension=int(ratio_data["comprehension"]),
        application=int(ratio_data["application"]),
    )
    if sum(standard_ratio) != 100:
        raise ValueError(f"standard_ratio must sum to 100, got {sum(standard_ratio)}")

    matrix_data = data.get("matrix_ratio", {})
    matrix_ratio = {
        Difficulty.RECALL: int(matrix_data["recall"]),
        Difficulty.COMPREHENSION: int(matrix_data["comprehension"]),
        Difficulty.APPLICATION: int(matrix_data["application"]),
        Difficulty.HIGH_APPLICATION: int(matrix_data["high_application"]),
    }

    presets = [
        ExamPreset(minutes=int(p["minutes"]), questions=int(p["questions"]))
        for p in data.get("presets", [])
    ]

    defaults_data = data.get("defaults", {})
    defaults = ExamDefaults(
        mode=ExamMode(defaults_data.get("mode", "Standard")),
        minutes=int(defaults_data.get("minutes", 45)),
        questions=int(defaults_data.get("questions", 30)),
    )

    rating_data = data.get("rating", {})
    rating = RatingConfig(
        excellent=int(rating_data.get("excellent", 80)),
        passing=int(rating_data.get("passing", 50)),
    )

    return AppConfig(
        standard_ratio=standard_ratio,
        matrix_ratio=matrix_ratio,
        presets=presets,
        defaults=defaults,
        rating=rating,
        paths=dict(data.get("paths", {})),
    )


def load_app_config(
    force_reload: bool = False,
    config_file: Path | None = None,
) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.
        config_file: Override the config file location.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload and config_file is None:
        return _cached_config

    path = config_file or CONFIG_FILE
    data = _get_defaults()

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{path}: top level must be a mapping, got {type(loaded).__name__}")
        data = _merge(data, loaded)
    else:
        logger.info("using_default_config")

    config = _parse_config(data)
    if config_file is None:
        _cached_config = config
    return config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
