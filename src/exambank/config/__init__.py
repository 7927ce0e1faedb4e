"""Configuration package for exambank."""

from exambank.config.app_config import (
    AppConfig,
    ExamDefaults,
    ExamPreset,
    RatingConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "ExamDefaults",
    "ExamPreset",
    "RatingConfig",
    "clear_config_cache",
    "load_app_config",
]
