"""
Threshold recommendation from recording history.

Each configured threshold seen in the history is scored by how far its
average warning count and warning rate are from the targets (1.5 warnings per
recording, warnings in 45% of recordings). The lowest weighted score wins,
unless it is within the stability margin of the current threshold.

Single Responsibility: Threshold recommendation logic.
"""
from typing import Any, Dict, List, Optional, Union

from .repository import HistoricalRecordingSummary
from .settings import AnalyticsSettings

NO_DATA_CONFIDENCE = 0.3
FEW_RECORDS = 10

Number = Union[int, float]


def _as_threshold(value: float) -> Number:
    """75.0 -> 75, so thresholds read naturally in output."""
    value = float(value)
    return int(value) if value.is_integer() else value


def threshold_stats(summaries: List[HistoricalRecordingSummary]) -> Dict[Number, Dict[str, Any]]:
    """
    Group summaries by threshold.

    Returns:
        {threshold: {count, total_warnings, avg_warnings, warning_rate}}, ordered by threshold
    """
    groups: Dict[Number, Dict[str, Any]] = {}
    for s in summaries:
        key = _as_threshold(s.threshold)
        group = groups.setdefault(key, {"count": 0, "total_warnings": 0, "with_warnings": 0})
        group["count"] += 1
        group["total_warnings"] += s.warning_count
        if s.warning_count > 0:
            group["with_warnings"] += 1

    stats = {}
    for key in sorted(groups):
        group = groups[key]
        stats[key] = {
            "count": group["count"],
            "total_warnings": group["total_warnings"],
            "avg_warnings": group["total_warnings"] / group["count"],
            "warning_rate": group["with_warnings"] / group["count"],
        }
    return stats


def score_threshold(avg_warnings: float, warning_rate: float, settings: AnalyticsSettings) -> float:
    """Weighted distance from the targets; lower is better."""
    return (
        settings.avg_warnings_weight * abs(avg_warnings - settings.target_avg_warnings)
        + settings.warning_rate_weight * abs(warning_rate - settings.target_warning_rate)
    )


def recommend_threshold(
    summaries: List[HistoricalRecordingSummary],
    current_threshold: Number = 80,
    classroom_id: Optional[str] = None,
    settings: Optional[AnalyticsSettings] = None,
) -> Dict[str, Any]:
    """
    Recommend a warning threshold.

    Args:
        summaries: Recording history
        current_threshold: Threshold currently configured
        classroom_id: Prefer this classroom's history (falls back to all history if it has none)
        settings: Targets, weights and margins

    Returns:
        Dictionary with recommended, confidence, reason, stats and sample_size
    """
    settings = settings or AnalyticsSettings()

    if not summaries:
        return {
            "recommended": current_threshold,
            "confidence": NO_DATA_CONFIDENCE,
            "reason": "No historical data, keeping the current threshold",
            "stats": {},
            "sample_size": 0,
        }

    relevant = summaries
    if classroom_id:
        relevant = [s for s in summaries if s.classroom_id == classroom_id] or summaries

    stats = threshold_stats(relevant)

    best_threshold: Number = current_threshold
    best_stats: Optional[Dict[str, Any]] = None
    best_score = float("inf")
    for threshold, group in stats.items():
        score = score_threshold(group["avg_warnings"], group["warning_rate"], settings)
        if score < best_score:
            best_score = score
            best_threshold = threshold
            best_stats = group

    # Stay put when the change would be small
    if abs(best_threshold - current_threshold) < settings.stability_margin_db:
        best_threshold = current_threshold

    n = len(relevant)
    confidence = min(settings.confidence_cap, 0.5 + n / 100)

    if n <= FEW_RECORDS:
        reason = "Few records so far, collect more data and re-run the analysis"
    else:
        reason = f"Based on {n} recordings, recommended threshold is {best_threshold} dB"
        avg = best_stats["avg_warnings"]
        if avg < 0.5:
            reason += f" (only {avg:.1f} warnings per recording at this level, it may be too loose)"
        elif avg > 3:
            reason += f" ({avg:.1f} warnings per recording at this level, it may be too sensitive)"

    return {
        "recommended": best_threshold,
        "confidence": round(confidence, 2),
        "reason": reason,
        "stats": stats,
        "sample_size": n,
    }
