"""
Typed views over the configuration dictionary.

Single Responsibility: Turn validated config sections into the values the
monitoring loop and the analytics use.
"""
from dataclasses import dataclass, field, asdict, replace
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidConfiguration


def validate_monitoring(monitoring: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate the monitoring section (also used for runtime changes)."""
    threshold = monitoring.get("threshold_db")
    if not isinstance(threshold, (int, float)) or isinstance(threshold, bool):
        return False, "monitoring.threshold_db must be a number"
    if not 0 <= threshold <= 100:
        return False, "monitoring.threshold_db must be between 0 and 100"
    max_warnings = monitoring.get("max_warnings")
    if not isinstance(max_warnings, int) or isinstance(max_warnings, bool) or max_warnings < 1:
        return False, "monitoring.max_warnings must be a positive integer"
    for key in (
        "cooldown_ms",
        "release_margin_db",
        "stop_delay_ms",
        "classification_interval_ms",
        "warning_band_db",
    ):
        value = monitoring.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
            return False, f"monitoring.{key} must be a non-negative number"
    return True, None


@dataclass(frozen=True)
class MonitorSettings:
    """Thresholds and timings of the live monitoring loop."""
    threshold_db: int = 80
    max_warnings: int = 3
    cooldown_ms: int = 2000
    release_margin_db: int = 5
    stop_delay_ms: int = 5000
    classification_interval_ms: int = 500
    warning_band_db: int = 10

    def __post_init__(self):
        ok, msg = validate_monitoring(asdict(self))
        if not ok:
            raise InvalidConfiguration(msg)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MonitorSettings":
        monitoring = config.get("monitoring", {})
        known = {k: v for k, v in monitoring.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def with_changes(self, **changes) -> "MonitorSettings":
        """Return a copy with `changes` applied; raises InvalidConfiguration on bad values."""
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise InvalidConfiguration(f"Unknown monitoring option(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    @property
    def cooldown_sec(self) -> float:
        return self.cooldown_ms / 1000.0

    @property
    def stop_delay_sec(self) -> float:
        return self.stop_delay_ms / 1000.0

    @property
    def classification_interval_sec(self) -> float:
        return self.classification_interval_ms / 1000.0

    @property
    def release_level(self) -> float:
        """Loudness below which the auto-stop timer may run."""
        return self.threshold_db - self.release_margin_db


def _default_time_slots() -> Dict[str, Tuple[int, int]]:
    return {"morning": (6, 12), "afternoon": (12, 18), "evening": (18, 22)}


@dataclass(frozen=True)
class AnalyticsSettings:
    """Targets, weights and windows of the history analytics."""
    days: Optional[int] = 30
    pattern_days: Optional[int] = 7
    target_avg_warnings: float = 1.5
    target_warning_rate: float = 0.45
    avg_warnings_weight: float = 2.0
    warning_rate_weight: float = 1.0
    stability_margin_db: int = 5
    confidence_cap: float = 0.9
    trend_window: int = 10
    trend_margin: float = 0.10
    time_slots: Dict[str, Tuple[int, int]] = field(default_factory=_default_time_slots)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnalyticsSettings":
        analytics = dict(config.get("analytics", {}))
        if "time_slots" in analytics:
            analytics["time_slots"] = {
                name: (int(bounds[0]), int(bounds[1]))
                for name, bounds in analytics["time_slots"].items()
            }
        known = {k: v for k, v in analytics.items() if k in cls.__dataclass_fields__}
        return cls(**known)
