"""Unit tests for configuration loading and validation"""
import json
import pytest

from dojo_scoring import config as config_module
from dojo_scoring.config import build_success_config, load_success_config, validate_config
from dojo_scoring.exceptions import ConfigurationError
from dojo_scoring.models.config import DEFAULT_POINT_VALUES, SuccessMetricsConfig


def test_defaults():
    config = SuccessMetricsConfig()

    assert config.point_values["quiz_completed"] == 50
    assert config.level_thresholds[0] == 0
    assert len(config.level_thresholds) == 20
    assert config.leaderboard_settings.max_entries == 100
    assert config.streak_settings.grace_hours == 6
    assert len(config.achievements) > 0


def test_config_is_read_only():
    config = SuccessMetricsConfig()
    with pytest.raises(Exception):
        config.level_thresholds = [0]


def test_build_without_overrides_returns_defaults():
    assert build_success_config(None) == SuccessMetricsConfig()


def test_point_table_merged_over_defaults():
    config = build_success_config({"pointValues": {"quiz_completed": 75, "kata_solved": 40}})

    assert config.point_values["quiz_completed"] == 75
    assert config.point_values["kata_solved"] == 40
    assert config.point_values["exam_completed"] == DEFAULT_POINT_VALUES["exam_completed"]


def test_snake_case_overrides():
    config = build_success_config({
        "time_of_day_multipliers": {"night": 1.0},
        "streak_settings": {"grace_hours": 12},
    })

    assert config.time_of_day_multipliers["night"] == 1.0
    assert config.time_of_day_multipliers["morning"] == 1.1
    assert config.streak_settings.grace_hours == 12


def test_level_thresholds_replaced_wholesale():
    config = build_success_config({"levelThresholds": [0, 10, 20]})
    assert config.level_thresholds == [0, 10, 20]


@pytest.mark.parametrize("overrides", [
    {"levelThresholds": [5, 10]},
    {"levelThresholds": [0, 20, 10]},
    {"streakMultipliers": {"3": -1.0}},
    {"leaderboardSettings": {"maxEntries": 0}},
    {"leaderboardSettings": {"categories": ["cooking"]}},
])
def test_invalid_overrides_rejected(overrides):
    with pytest.raises(ConfigurationError):
        build_success_config(overrides)


def test_duplicate_achievement_ids_rejected():
    achievement = {
        "id": "twice",
        "name": "Twice",
        "category": "learning",
        "difficulty": "bronze",
        "points": 10,
        "requirements": [{"type": "event_count", "threshold": 1}],
    }
    with pytest.raises(ConfigurationError):
        build_success_config({"achievements": [achievement, achievement]})


def test_load_from_file(tmp_path):
    path = tmp_path / "scoring.json"
    path.write_text(json.dumps({"difficultyMultipliers": {"Z1": 3.0}}), encoding="utf-8")

    config = load_success_config(path)

    assert config.difficulty_multipliers["Z1"] == 3.0
    assert config.difficulty_multipliers["C2"] == 2.0


def test_load_without_path_uses_defaults(monkeypatch):
    monkeypatch.setattr(config_module, "SCORING_CONFIG_PATH", None)
    assert load_success_config() == SuccessMetricsConfig()


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_success_config(tmp_path / "missing.json")


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_load_malformed_file(tmp_path, content):
    path = tmp_path / "scoring.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_success_config(path)


def test_validate_config_accepts_defaults(monkeypatch):
    monkeypatch.setattr(config_module, "LOG_LEVEL", "INFO")
    validate_config()


@pytest.mark.parametrize("name,value", [
    ("LOG_LEVEL", "CHATTY"),
    ("STREAK_SWEEP_INTERVAL_SECONDS", 0),
    ("DUPLICATE_WINDOW_SECONDS", -1),
    ("SENTRY_TRACES_SAMPLE_RATE", 1.5),
])
def test_validate_config_rejects(monkeypatch, name, value):
    monkeypatch.setattr(config_module, name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        validate_config()

    assert exc_info.value.config_key == name
