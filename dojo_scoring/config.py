"""Configuration management"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from dojo_scoring.exceptions import ConfigurationError
from dojo_scoring.models.config import SuccessMetricsConfig

load_dotenv()

logger = logging.getLogger(__name__)

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Engine tables (JSON file merged over the built-in defaults)
SCORING_CONFIG_PATH: Optional[str] = os.getenv("SCORING_CONFIG_PATH") or None

# Background jobs
ENABLE_LEADERBOARD_REFRESH: bool = os.getenv("ENABLE_LEADERBOARD_REFRESH", "true").lower() == "true"
ENABLE_STREAK_SWEEP: bool = os.getenv("ENABLE_STREAK_SWEEP", "true").lower() == "true"
STREAK_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("STREAK_SWEEP_INTERVAL_SECONDS", "3600"))

# Ingestion
DUPLICATE_WINDOW_SECONDS: int = int(os.getenv("DUPLICATE_WINDOW_SECONDS", "60"))

# Monitoring
ENABLE_PROMETHEUS: bool = os.getenv("ENABLE_PROMETHEUS", "true").lower() == "true"
METRICS_PORT: int = int(os.getenv("METRICS_PORT", "9090"))
ENABLE_SENTRY: bool = os.getenv("ENABLE_SENTRY", "false").lower() == "true"
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE: float = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

# Tables merged key-by-key rather than replaced wholesale
_MERGED_TABLES = {
    "pointValues": "point_values",
    "streakMultipliers": "streak_multipliers",
    "difficultyMultipliers": "difficulty_multipliers",
    "timeOfDayMultipliers": "time_of_day_multipliers",
}


# Validation
def validate_config() -> None:
    """Validate process configuration"""
    if LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(f"Invalid LOG_LEVEL: {LOG_LEVEL}", config_key="LOG_LEVEL")
    if STREAK_SWEEP_INTERVAL_SECONDS <= 0:
        raise ConfigurationError(
            "STREAK_SWEEP_INTERVAL_SECONDS must be positive",
            config_key="STREAK_SWEEP_INTERVAL_SECONDS",
        )
    if DUPLICATE_WINDOW_SECONDS < 0:
        raise ConfigurationError(
            "DUPLICATE_WINDOW_SECONDS must not be negative",
            config_key="DUPLICATE_WINDOW_SECONDS",
        )
    if not 0.0 <= SENTRY_TRACES_SAMPLE_RATE <= 1.0:
        raise ConfigurationError(
            "SENTRY_TRACES_SAMPLE_RATE must be between 0.0 and 1.0",
            config_key="SENTRY_TRACES_SAMPLE_RATE",
        )


def _merge_tables(data: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay partial multiplier/point tables onto the defaults"""
    defaults = SuccessMetricsConfig()
    merged = dict(data)

    for camel, snake in _MERGED_TABLES.items():
        key = camel if camel in merged else snake if snake in merged else None
        if key is None:
            continue
        table = dict(getattr(defaults, snake))
        table.update(merged[key])
        merged[key] = table

    return merged


def build_success_config(data: Optional[Dict[str, Any]] = None) -> SuccessMetricsConfig:
    """
    Build the engine configuration from a (partial) mapping

    Args:
        data: Overrides, camelCase or snake_case keys. Point and multiplier
            tables are merged over the defaults; everything else replaces.

    Returns:
        Frozen SuccessMetricsConfig

    Raises:
        ConfigurationError: If the overrides are invalid
    """
    if not data:
        return SuccessMetricsConfig()

    try:
        return SuccessMetricsConfig.model_validate(_merge_tables(data))
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid scoring configuration: {e.error_count()} error(s)",
            context={"errors": e.errors(include_url=False)},
            cause=e,
        )


def load_success_config(path: Optional[Union[str, Path]] = None) -> SuccessMetricsConfig:
    """
    Load the engine configuration from a JSON file

    Args:
        path: JSON file path (defaults to SCORING_CONFIG_PATH; built-in
            defaults when neither is set)

    Returns:
        Frozen SuccessMetricsConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = path or SCORING_CONFIG_PATH
    if not path:
        logger.info("No scoring config file set, using built-in defaults")
        return SuccessMetricsConfig()

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Cannot read scoring config {path}: {e}",
            config_key="SCORING_CONFIG_PATH",
            cause=e,
        )

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Scoring config {path} must contain a JSON object",
            config_key="SCORING_CONFIG_PATH",
        )

    config = build_success_config(data)
    logger.info(f"Loaded scoring config from {path}")
    return config
