"""
Noise pattern analysis over the noise samples of past recordings.

Single Responsibility: Find when the room gets loud and which noise types
dominate, by hour of day, by day and by type.
"""
from collections import Counter, OrderedDict
from typing import Any, Dict, List, Optional

from .classifier import NOISE_TYPE_INFO, NoiseType
from .repository import NoiseRecord

QUIET_BELOW = 60
NOISY_FROM = 80
PEAK_ALERT = 80
PERIODIC_PEAK = 75
MAIN_TYPE_SHARE = 30.0

MORNING_HOURS = range(8, 12)
AFTERNOON_HOURS = range(14, 17)

TOP_TYPES_PER_HOUR = 3
TOP_PEAK_HOURS = 3
MAIN_PROBLEMS = 5


def _hour_label(hour: int) -> str:
    return f"{hour}:00-{hour + 1}:00"


def _noise_level(avg_loudness: float) -> str:
    if avg_loudness < QUIET_BELOW:
        return "quiet"
    if avg_loudness < NOISY_FROM:
        return "normal"
    return "noisy"


def _type_name(value: str) -> str:
    try:
        return NOISE_TYPE_INFO[NoiseType(value)][1]
    except ValueError:
        return value


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 1)


def hourly_patterns(records: List[NoiseRecord]) -> List[Dict[str, Any]]:
    """One entry per hour 0..23 with sample count, average loudness and main types."""
    by_hour: Dict[int, List[NoiseRecord]] = {}
    for r in records:
        by_hour.setdefault(r.timestamp.hour, []).append(r)

    analysis = []
    for hour in range(24):
        items = by_hour.get(hour)
        if not items:
            analysis.append({
                "hour": hour,
                "label": _hour_label(hour),
                "count": 0,
                "avg_loudness": 0.0,
                "main_noise_types": [],
                "noise_level": "no data",
            })
            continue

        avg = sum(r.loudness for r in items) / len(items)
        types = Counter(r.noise_type for r in items if r.noise_type)
        analysis.append({
            "hour": hour,
            "label": _hour_label(hour),
            "count": len(items),
            "avg_loudness": round(avg, 1),
            "main_noise_types": [
                {"type": t, "count": c, "percentage": _percentage(c, len(items))}
                for t, c in types.most_common(TOP_TYPES_PER_HOUR)
            ],
            "noise_level": _noise_level(avg),
        })
    return analysis


def daily_patterns(records: List[NoiseRecord]) -> List[Dict[str, Any]]:
    """Per-day sample count, average and peak loudness, oldest day first."""
    by_day: Dict[str, List[float]] = {}
    weekday: Dict[str, str] = {}
    for r in records:
        day = r.timestamp.date().isoformat()
        by_day.setdefault(day, []).append(r.loudness)
        weekday[day] = r.timestamp.strftime("%A")

    return [
        {
            "date": day,
            "count": len(values),
            "avg_loudness": round(sum(values) / len(values), 1),
            "peak_loudness": round(max(values), 1),
            "day_of_week": weekday[day],
        }
        for day, values in sorted(by_day.items())
    ]


def noise_type_patterns(records: List[NoiseRecord]) -> List[Dict[str, Any]]:
    """Per-type statistics with the hours the type is heard most, most frequent type first."""
    by_type: Dict[str, List[NoiseRecord]] = OrderedDict()
    for r in records:
        if r.noise_type:
            by_type.setdefault(r.noise_type, []).append(r)

    analysis = []
    for noise_type, items in by_type.items():
        hours = Counter(r.timestamp.hour for r in items)
        analysis.append({
            "type": noise_type,
            "label": _type_name(noise_type),
            "count": len(items),
            "percentage": _percentage(len(items), len(records)),
            "avg_loudness": round(sum(r.loudness for r in items) / len(items), 1),
            "avg_confidence": round(sum(r.confidence for r in items) / len(items), 2),
            "peak_hours": [
                {"hour": h, "count": c, "percentage": _percentage(c, len(items))}
                for h, c in hours.most_common(TOP_PEAK_HOURS)
            ],
        })

    analysis.sort(key=lambda t: t["count"], reverse=True)
    return analysis


def _has_peak(hourly: List[Dict[str, Any]], hours: range) -> bool:
    return any(hourly[h]["avg_loudness"] > PERIODIC_PEAK for h in hours)


def build_pattern_recommendations(
    hourly: List[Dict[str, Any]],
    peak_hours: List[Dict[str, Any]],
    main_problems: List[Dict[str, Any]]
) -> List[str]:
    recommendations = []

    if peak_hours and peak_hours[0]["avg_loudness"] > PEAK_ALERT:
        recommendations.append(
            f"{peak_hours[0]['label']} is the loudest hour, tighten supervision during it"
        )

    if main_problems and main_problems[0]["percentage"] > MAIN_TYPE_SHARE:
        main = main_problems[0]
        recommendations.append(
            f"Main noise type is {main['label']} ({main['percentage']}% of samples), address it specifically"
        )

    morning = _has_peak(hourly, MORNING_HOURS)
    afternoon = _has_peak(hourly, AFTERNOON_HOURS)
    if morning and afternoon:
        recommendations.append("Noise peaks both in the morning and in the afternoon, keep discipline up all day")
    elif morning:
        recommendations.append("Noise peaks in the morning, tighten early self-study supervision")
    elif afternoon:
        recommendations.append("Noise peaks in the afternoon, tighten classroom discipline")

    return recommendations


def noise_patterns(records: List[NoiseRecord], days: Optional[int] = None) -> Dict[str, Any]:
    """
    Analyze the noise samples of past recordings.

    Args:
        records: Noise samples, ordered by recording then sample time
        days: Look-back window the records were loaded with (for the summary)

    Returns:
        Pattern dictionary; {"has_data": False, "message": ...} without samples
    """
    if not records:
        return {
            "has_data": False,
            "message": "No noise samples recorded yet",
        }

    hourly = hourly_patterns(records)
    by_type = noise_type_patterns(records)

    active_hours = [h for h in hourly if h["count"] > 0]
    peak_hours = sorted(active_hours, key=lambda h: h["avg_loudness"], reverse=True)[:TOP_PEAK_HOURS]
    quietest = min(active_hours, key=lambda h: h["avg_loudness"])
    main_problems = by_type[:MAIN_PROBLEMS]

    loudness = [r.loudness for r in records]
    return {
        "has_data": True,
        "summary": {
            "total_records": len(records),
            "analysis_period": f"last {days} days" if days is not None else "all time",
            "avg_loudness": round(sum(loudness) / len(loudness), 1),
            "peak_loudness": max(loudness),
        },
        "hourly_patterns": hourly,
        "daily_patterns": daily_patterns(records),
        "noise_type_patterns": by_type,
        "peak_hours": peak_hours,
        "main_noise_problems": main_problems,
        "recommendations": build_pattern_recommendations(hourly, peak_hours, main_problems),
        "insights": {
            "quietest_hour": quietest,
            "noisiest_hour": peak_hours[0],
            "most_common_noise": main_problems[0] if main_problems else None,
        },
    }
