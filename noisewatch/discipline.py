"""
Classroom discipline report.

Groups the recording history by classroom, grades each classroom by its
average warnings per recording and ranks the classrooms against each other.

Single Responsibility: Discipline report logic.
"""
import datetime
from collections import Counter, OrderedDict
from typing import Any, Dict, List, Optional

from .repository import HistoricalRecordingSummary

UNASSIGNED = "unassigned"
MAX_SCORE = 100.0
SCORE_PER_WARNING = 20.0
RECENT_RECORDINGS = 5
RANKING_SIZE = 3
MAIN_ISSUES = 3
WIDE_GAP_SCORE = 30.0
OVERALL_STRICT_AVG = 2.0

# (minimum average warnings, level), checked top-down
LEVELS = [
    (3.0, "needs improvement"),
    (2.0, "fair"),
    (1.0, "good"),
]
BEST_LEVEL = "excellent"


def discipline_level(avg_warnings: float) -> str:
    for minimum, level in LEVELS:
        if avg_warnings >= minimum:
            return level
    return BEST_LEVEL


def discipline_score(avg_warnings: float) -> float:
    """Score out of 100; every average warning costs 20 points."""
    return round(max(0.0, MAX_SCORE - avg_warnings * SCORE_PER_WARNING), 1)


def _in_period(
    summary: HistoricalRecordingSummary,
    start_date: Optional[datetime.date],
    end_date: Optional[datetime.date]
) -> bool:
    day = summary.timestamp.date()
    if start_date is not None and day < start_date:
        return False
    if end_date is not None and day > end_date:
        return False
    return True


def classroom_report(classroom_id: str, summaries: List[HistoricalRecordingSummary]) -> Dict[str, Any]:
    """
    Statistics, grade and main noise issues of one classroom.

    Args:
        classroom_id: Classroom the summaries belong to
        summaries: Its recordings, newest first
    """
    counts = [s.warning_count for s in summaries]
    total_duration = sum(s.duration_sec for s in summaries)
    avg_warnings = sum(counts) / len(counts)

    issues: Counter = Counter()
    for s in summaries:
        for entry in s.noise_types:
            if entry.get("type"):
                issues[entry["type"]] += 1

    return {
        "classroom_id": classroom_id,
        "stats": {
            "recordings": len(summaries),
            "total_warnings": sum(counts),
            "avg_warnings": round(avg_warnings, 2),
            "max_warnings": max(counts),
            "min_warnings": min(counts),
            "total_duration_sec": round(total_duration, 2),
            "avg_duration_sec": round(total_duration / len(summaries), 1),
        },
        "discipline": {
            "level": discipline_level(avg_warnings),
            "score": discipline_score(avg_warnings),
        },
        "noise_issues": [
            {"type": noise_type, "count": count}
            for noise_type, count in issues.most_common(MAIN_ISSUES)
        ],
        "recent_recordings": [
            {
                "timestamp": s.timestamp.isoformat(timespec="seconds"),
                "warnings": s.warning_count,
                "duration_sec": s.duration_sec,
            }
            for s in summaries[:RECENT_RECORDINGS]
        ],
    }


def discipline_report(
    summaries: List[HistoricalRecordingSummary],
    start_date: Optional[datetime.date] = None,
    end_date: Optional[datetime.date] = None,
    now: Optional[datetime.datetime] = None
) -> Dict[str, Any]:
    """
    Build the discipline report for every classroom in the history.

    Args:
        summaries: Recording history, newest first
        start_date: First day to include (None for no lower bound)
        end_date: Last day to include (None for no upper bound)
        now: Report generation time (default: now)

    Returns:
        Report dictionary; {"has_data": False, "message": ...} when no
        recording falls in the period
    """
    selected = [s for s in summaries if _in_period(s, start_date, end_date)]
    if not selected:
        return {
            "has_data": False,
            "message": "No recordings in the selected period",
        }

    by_classroom: Dict[str, List[HistoricalRecordingSummary]] = OrderedDict()
    for s in selected:
        by_classroom.setdefault(s.classroom_id or UNASSIGNED, []).append(s)

    classrooms = [classroom_report(room, items) for room, items in by_classroom.items()]
    # Stable sort: equal scores keep history order
    classrooms.sort(key=lambda c: c["discipline"]["score"], reverse=True)

    total_warnings = sum(s.warning_count for s in selected)
    overall_avg = total_warnings / len(selected)

    recommendations = []
    if overall_avg > OVERALL_STRICT_AVG:
        recommendations.append("Overall discipline needs strengthening, consider a class discipline campaign")
    if len(classrooms) > 1:
        best, worst = classrooms[0], classrooms[-1]
        if best["discipline"]["score"] - worst["discipline"]["score"] > WIDE_GAP_SCORE:
            recommendations.append(
                f"Discipline differs widely between classrooms, "
                f"share the practices of classroom {best['classroom_id']}"
            )

    now = now or datetime.datetime.now()
    return {
        "has_data": True,
        "report_info": {
            "generated_at": now.isoformat(timespec="seconds"),
            "period": {
                "start": start_date.isoformat() if start_date else "all",
                "end": end_date.isoformat() if end_date else "now",
            },
            "total_classrooms": len(classrooms),
        },
        "summary": {
            "total_recordings": len(selected),
            "total_warnings": total_warnings,
            "overall_avg_warnings": round(overall_avg, 2),
            "total_duration_sec": round(sum(s.duration_sec for s in selected), 2),
            "overall_level": discipline_level(overall_avg),
            "recommendations": recommendations,
        },
        "classrooms": classrooms,
        "rankings": {
            "best": classrooms[:RANKING_SIZE],
            "worst": list(reversed(classrooms[-RANKING_SIZE:])),
        },
    }
