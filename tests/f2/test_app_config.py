"""Tests for application configuration (F2)."""

from pathlib import Path

import pytest

from exambank.config.app_config import (
    ExamPreset,
    clear_config_cache,
    load_app_config,
)
from exambank.core.distribution import Ratio
from exambank.core.models import Difficulty, ExamMode


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


class TestDefaults:
    """Built-in defaults when no config file exists."""

    def test_defaults(self, tmp_path):
        config = load_app_config(config_file=tmp_path / "missing.yaml")

        assert config.standard_ratio == Ratio(50, 30, 20)
        assert config.matrix_ratio[Difficulty.HIGH_APPLICATION] == 10
        assert config.defaults.mode is ExamMode.STANDARD
        assert config.defaults.minutes == 45
        assert config.defaults.questions == 30
        assert config.rating.excellent == 80
        assert config.rating.passing == 50

    def test_presets(self, tmp_path):
        config = load_app_config(config_file=tmp_path / "missing.yaml")

        assert config.presets == [
            ExamPreset(15, 10),
            ExamPreset(30, 20),
            ExamPreset(45, 30),
            ExamPreset(60, 40),
            ExamPreset(90, 50),
        ]
        assert config.presets[0].label == "15 min"


class TestYamlOverrides:
    """Values from the YAML file override defaults."""

    def test_partial_override(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text(
            "rating:\n  excellent: 90\ndefaults:\n  mode: Custom\n",
            encoding="utf-8",
        )
        config = load_app_config(config_file=path)

        assert config.rating.excellent == 90
        assert config.rating.passing == 50
        assert config.defaults.mode is ExamMode.CUSTOM
        assert config.defaults.minutes == 45

    def test_presets_replaced(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text("presets:\n  - minutes: 10\n    questions: 5\n", encoding="utf-8")

        assert load_app_config(config_file=path).presets == [ExamPreset(10, 5)]

    def test_invalid_ratio_raises(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text("standard_ratio:\n  recall: 60\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_app_config(config_file=path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text("", encoding="utf-8")
        assert load_app_config(config_file=path).rating.excellent == 80


class TestCache:
    """Module-level cache behavior."""

    def test_cached_between_calls(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_app_config() is load_app_config()

    def test_clear_and_force_reload(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        first = load_app_config()

        assert load_app_config(force_reload=True) is not first
        reloaded = load_app_config()
        clear_config_cache()
        assert load_app_config() is not reloaded

    def test_explicit_file_not_cached(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cached = load_app_config()
        assert load_app_config(config_file=tmp_path / "other.yaml") is not cached
        assert load_app_config() is cached


class TestHistoryPath:
    """Tests for AppConfig.history_path."""

    def test_relative_to_data_dir(self, tmp_path):
        config = load_app_config(config_file=tmp_path / "missing.yaml")
        assert config.history_path(Path("data")) == Path("data/history/sessions_v1.json")

    def test_absolute_path_kept(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        target = tmp_path / "elsewhere" / "h.json"
        path.write_text(f"paths:\n  history_file: {target}\n", encoding="utf-8")

        assert load_app_config(config_file=path).history_path(Path("data")) == target


class TestMalformedFile:
    """Config files that are not a mapping."""

    def test_list_at_top_level(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ValueError) as exc_info:
            load_app_config(config_file=path)
        assert str(path) in str(exc_info.value)

    def test_scalar_at_top_level(self, tmp_path):
        path = tmp_path / "exambank_v1.yaml"
        path.write_text("just text\n", encoding="utf-8")

        with pytest.raises(ValueError):
            load_app_config(config_file=path)
