#!/usr/bin/env python3
"""Configuration loader for the classroom noise monitor."""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

from logger import get_logger
from noisewatch.errors import InvalidConfiguration
from noisewatch.settings import validate_monitoring

log = get_logger(__name__)


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "monitoring": {
            "threshold_db": 80,
            "max_warnings": 3,
            "cooldown_ms": 2000,
            "release_margin_db": 5,
            "stop_delay_ms": 5000,
            "classification_interval_ms": 500,
            "warning_band_db": 10
        },
        "audio": {
            "device": "plughw:CARD=Device,DEV=0",
            "sample_rate": 16000,
            "channels": 1,
            "sample_format": "S16_LE",
            "fft_size": 2048,
            "smoothing_time_constant": 0.8,
            "min_decibels": -100.0,
            "max_decibels": -30.0
        },
        "recording": {
            "output_dir": "recordings",
            "video_device": "/dev/video0",
            "video_size": "1280x720"
        },
        "history": {
            "history_file": "data/recordings.csv",
            "noise_records_file": None,
            "classroom_id": None
        },
        "analytics": {
            "days": 30,
            "pattern_days": 7,
            "target_avg_warnings": 1.5,
            "target_warning_rate": 0.45,
            "avg_warnings_weight": 2.0,
            "warning_rate_weight": 1.0,
            "stability_margin_db": 5,
            "confidence_cap": 0.9,
            "trend_window": 10,
            "trend_margin": 0.10,
            "time_slots": {
                "morning": [6, 12],
                "afternoon": [12, 18],
                "evening": [18, 22]
            }
        },
        "logging": {
            "log_file": None,
            "level": "INFO"
        }
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate configuration structure and values."""
    defaults = get_default_config()

    # Check required top-level keys
    for key in defaults.keys():
        if key not in config:
            return False, f"Missing required config section: {key}"
        if not isinstance(config[key], dict):
            return False, f"Config section {key} must be an object"

    ok, msg = validate_monitoring(config["monitoring"])
    if not ok:
        return ok, msg

    # Validate audio settings
    audio = config["audio"]
    if not _is_int(audio.get("sample_rate")) or audio["sample_rate"] <= 0:
        return False, "audio.sample_rate must be a positive integer"
    fft_size = audio.get("fft_size")
    if not _is_int(fft_size) or fft_size < 32 or fft_size > 32768 or fft_size & (fft_size - 1):
        return False, "audio.fft_size must be a power of two between 32 and 32768"
    smoothing = audio.get("smoothing_time_constant")
    if not _is_number(smoothing) or not 0 <= smoothing <= 1:
        return False, "audio.smoothing_time_constant must be between 0 and 1"
    min_db, max_db = audio.get("min_decibels"), audio.get("max_decibels")
    if not _is_number(min_db) or not _is_number(max_db):
        return False, "audio.min_decibels and audio.max_decibels must be numbers"
    if min_db >= max_db:
        return False, "audio.min_decibels must be lower than audio.max_decibels"

    # Validate analytics
    analytics = config["analytics"]
    days = analytics.get("days")
    if days is not None and (not _is_int(days) or days <= 0):
        return False, "analytics.days must be a positive integer or null"
    pattern_days = analytics.get("pattern_days")
    if pattern_days is not None and (not _is_int(pattern_days) or pattern_days <= 0):
        return False, "analytics.pattern_days must be a positive integer or null"
    for key in (
        "avg_warnings_weight",
        "warning_rate_weight",
        "target_avg_warnings",
        "target_warning_rate",
        "stability_margin_db",
        "trend_margin",
    ):
        value = analytics.get(key)
        if not _is_number(value) or value < 0:
            return False, f"analytics.{key} must be a non-negative number"
    cap = analytics.get("confidence_cap")
    if not _is_number(cap) or not 0 < cap <= 1:
        return False, "analytics.confidence_cap must be between 0 and 1"
    if not _is_int(analytics.get("trend_window")) or analytics["trend_window"] < 1:
        return False, "analytics.trend_window must be a positive integer"

    slots = analytics.get("time_slots")
    if not isinstance(slots, dict) or not slots:
        return False, "analytics.time_slots must define at least one slot"
    for name, bounds in slots.items():
        if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
            return False, f"analytics.time_slots.{name} must be [start_hour, end_hour]"
        start, end = bounds
        if not _is_int(start) or not _is_int(end):
            return False, f"analytics.time_slots.{name} hours must be integers"
        if not (0 <= start < end <= 24):
            return False, f"analytics.time_slots.{name} hours must satisfy 0 <= start < end <= 24"

    return True, None


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from JSON file, merging with defaults.

    Args:
        config_path: Path to config file. If None, looks for config.json in current directory.

    Returns:
        Merged configuration dictionary.

    Raises:
        InvalidConfiguration: If the file is not valid JSON or a value is out of range.
    """
    defaults = get_default_config()

    if config_path is None:
        config_path = Path("config.json")

    if not config_path.exists():
        log.info(f"Config file {config_path} not found, using defaults")
        return defaults

    try:
        with config_path.open() as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfiguration(f"Invalid JSON in config file {config_path}: {e}")
    if not isinstance(config, dict):
        raise InvalidConfiguration(f"Config file {config_path} must contain a JSON object")

    # Deep merge with defaults
    merged = _deep_merge(defaults, config)

    is_valid, error_msg = validate_config(merged)
    if not is_valid:
        raise InvalidConfiguration(f"Invalid configuration: {error_msg}")

    log.info(f"Loaded configuration from {config_path}")
    return merged


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get nested config value using dot notation.

    Example: get_config_value(config, "monitoring.threshold_db")
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
