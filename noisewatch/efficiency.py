"""
Learning efficiency analysis over recording history.

Buckets recordings into hour-of-day slots, compares recent against older
warning levels and turns both into plain-text recommendations.

Single Responsibility: Efficiency analysis logic.
"""
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .classifier import NOISE_TYPE_INFO, NoiseType
from .repository import HistoricalRecordingSummary
from .settings import AnalyticsSettings

NOISY_SLOT_AVG = 2.0
MAX_EFFICIENCY = 10.0

SLOT_REMARKS = {
    "morning": "Morning is noisy, tighten discipline during early self-study",
    "afternoon": "Afternoon is noisy, students may be tired; consider scheduling a break",
    "evening": "Evening is noisy, check lighting and comfort of the study room",
}


def _average(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def _slot_label(name: str, start: int, end: int) -> str:
    return f"{name.capitalize()} ({start}:00-{end}:00)"


def _noise_type_name(value: str) -> str:
    try:
        return NOISE_TYPE_INFO[NoiseType(value)][1]
    except ValueError:
        return value


def slot_analysis(
    summaries: List[HistoricalRecordingSummary],
    settings: AnalyticsSettings
) -> Dict[str, Dict[str, Any]]:
    """
    Warning statistics per time slot.

    A recording belongs to the first slot with start <= hour < end; hours
    outside every slot are not counted.
    """
    buckets: Dict[str, List[int]] = OrderedDict((name, []) for name in settings.time_slots)
    for s in summaries:
        hour = s.timestamp.hour
        for name, (start, end) in settings.time_slots.items():
            if start <= hour < end:
                buckets[name].append(s.warning_count)
                break

    analysis = OrderedDict()
    for name, counts in buckets.items():
        start, end = settings.time_slots[name]
        avg = _average(counts)
        analysis[name] = {
            "label": _slot_label(name, start, end),
            "records": len(counts),
            "total_warnings": sum(counts),
            "avg_warnings": round(avg, 2),
            "efficiency": max(0.0, MAX_EFFICIENCY - avg) if counts else 0.0,
        }
    return analysis


def warning_trend(summaries: List[HistoricalRecordingSummary], settings: AnalyticsSettings) -> Dict[str, Any]:
    """
    Compare the most recent `trend_window` recordings with the ones before them.

    Args:
        summaries: History ordered newest first

    Returns:
        {direction, value (percent change or None), recent_avg, older_avg}
    """
    window = settings.trend_window
    recent = [s.warning_count for s in summaries[:window]]
    older = [s.warning_count for s in summaries[window:2 * window]]

    recent_avg = _average(recent)
    older_avg = _average(older) if older else recent_avg

    direction = "stable"
    value: Optional[float] = 0.0
    if older:
        if older_avg == 0:
            value = None
            if recent_avg > 0:
                direction = "rising"
        else:
            change = (recent_avg - older_avg) / older_avg
            value = round(change * 100, 1)
            if change > settings.trend_margin:
                direction = "rising"
            elif change < -settings.trend_margin:
                direction = "falling"

    return {
        "direction": direction,
        "value": value,
        "recent_avg": round(recent_avg, 2),
        "older_avg": round(older_avg, 2),
    }


def best_time_slot(slots: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Slot with the lowest average among slots that have recordings; earlier slot wins ties."""
    best_name = None
    for name, stats in slots.items():
        if stats["records"] == 0:
            continue
        if best_name is None or stats["avg_warnings"] < slots[best_name]["avg_warnings"]:
            best_name = name
    if best_name is None:
        return None
    return {"slot": best_name, **slots[best_name]}


def noise_type_stats(summaries: List[HistoricalRecordingSummary]) -> Dict[str, Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = OrderedDict()
    for s in summaries:
        for entry in s.noise_types:
            noise_type = entry.get("type")
            if not noise_type:
                continue
            item = stats.setdefault(noise_type, {"count": 0, "total_confidence": 0.0})
            item["count"] += 1
            item["total_confidence"] += float(entry.get("confidence") or 0.0)

    for item in stats.values():
        item["avg_confidence"] = round(item["total_confidence"] / item["count"], 2)
    return stats


def build_recommendations(
    slots: Dict[str, Dict[str, Any]],
    trend: Dict[str, Any],
    noise_types: Dict[str, Dict[str, Any]]
) -> List[str]:
    recommendations = []

    for name, stats in slots.items():
        if stats["avg_warnings"] > NOISY_SLOT_AVG:
            recommendations.append(SLOT_REMARKS.get(
                name, f"{stats['label']} is noisy ({stats['avg_warnings']} warnings per recording)"
            ))

    if trend["direction"] == "rising":
        recommendations.append("Noise is trending up recently, keep an eye on class discipline")
    elif trend["direction"] == "falling":
        recommendations.append("Noise is trending down recently, discipline is improving")

    if noise_types:
        main_type, main_stats = max(noise_types.items(), key=lambda kv: kv[1]["count"])
        recommendations.append(
            f"Main noise type: {_noise_type_name(main_type)} (seen {main_stats['count']} times)"
        )

    if not recommendations:
        recommendations.append("Overall noise level is good, keep it up")

    return recommendations


def analyze_efficiency(
    summaries: List[HistoricalRecordingSummary],
    settings: Optional[AnalyticsSettings] = None
) -> Dict[str, Any]:
    """
    Analyze how noise varies over the day and over time.

    Args:
        summaries: Recording history, newest first
        settings: Time slots, trend window and margin

    Returns:
        Analysis dictionary; {"has_data": False, "message": ...} for empty history
    """
    settings = settings or AnalyticsSettings()

    if not summaries:
        return {
            "has_data": False,
            "message": "No recordings to analyze yet",
        }

    slots = slot_analysis(summaries, settings)
    trend = warning_trend(summaries, settings)
    noise_types = noise_type_stats(summaries)
    counts = [s.warning_count for s in summaries]

    return {
        "has_data": True,
        "total_records": len(summaries),
        "time_slot_analysis": slots,
        "trend": trend,
        "best_time_slot": best_time_slot(slots),
        "noise_type_stats": noise_types,
        "recommendations": build_recommendations(slots, trend, noise_types),
        "summary": {
            "overall_avg_warnings": round(_average(counts), 2),
            "total_duration_sec": round(sum(s.duration_sec for s in summaries), 2),
            "period": f"last {settings.days} days" if settings.days is not None else "all time",
        },
    }
