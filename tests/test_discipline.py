"""
Tests for noisewatch.discipline module.
"""
import datetime

import pytest

from noisewatch.discipline import discipline_level, discipline_report, discipline_score

from tests.conftest import make_summary


def room(classroom_id, counts, day=3, **kwargs):
    return [
        make_summary(c, classroom_id=classroom_id, timestamp=datetime.datetime(2025, 3, day, 9 + i), **kwargs)
        for i, c in enumerate(counts)
    ]


class TestGrading:

    @pytest.mark.parametrize("avg,level", [
        (0.0, "excellent"),
        (0.99, "excellent"),
        (1.0, "good"),
        (2.0, "fair"),
        (2.99, "fair"),
        (3.0, "needs improvement"),
    ])
    def test_levels(self, avg, level):
        assert discipline_level(avg) == level

    def test_score(self):
        assert discipline_score(0) == 100.0
        assert discipline_score(1.5) == 70.0
        assert discipline_score(6) == 0.0


class TestDisciplineReport:
    """Test the per-classroom report."""

    def test_empty_history(self):
        result = discipline_report([])

        assert result["has_data"] is False
        assert result["message"]

    def test_classroom_stats(self):
        summaries = room("3A", [1, 3, 2], duration_sec=30.0)

        report = discipline_report(summaries)
        stats = report["classrooms"][0]["stats"]

        assert stats["recordings"] == 3
        assert stats["total_warnings"] == 6
        assert stats["avg_warnings"] == 2.0
        assert stats["max_warnings"] == 3
        assert stats["min_warnings"] == 1
        assert stats["total_duration_sec"] == 90.0
        assert stats["avg_duration_sec"] == 30.0
        assert report["classrooms"][0]["discipline"] == {"level": "fair", "score": 60.0}

    def test_classrooms_sorted_by_score(self):
        summaries = room("3A", [3, 3]) + room("3B", [0, 1]) + room("3C", [2])

        report = discipline_report(summaries)

        assert [c["classroom_id"] for c in report["classrooms"]] == ["3B", "3C", "3A"]
        assert report["report_info"]["total_classrooms"] == 3

    def test_rankings(self):
        summaries = []
        for i, name in enumerate(["1A", "1B", "1C", "1D"]):
            summaries += room(name, [i])

        rankings = discipline_report(summaries)["rankings"]

        assert [c["classroom_id"] for c in rankings["best"]] == ["1A", "1B", "1C"]
        assert [c["classroom_id"] for c in rankings["worst"]] == ["1D", "1C", "1B"]

    def test_missing_classroom_is_unassigned(self):
        report = discipline_report([make_summary(1)])

        assert report["classrooms"][0]["classroom_id"] == "unassigned"

    def test_main_noise_issues(self):
        summaries = [
            make_summary(1, classroom_id="3A", noise_types=[{"type": "speech"}, {"type": "typing"}]),
            make_summary(1, classroom_id="3A", noise_types=[{"type": "speech"}, {"type": "ringtone"}]),
            make_summary(1, classroom_id="3A", noise_types=[{"type": "footsteps"}, {"type": "speech"}]),
        ]

        issues = discipline_report(summaries)["classrooms"][0]["noise_issues"]

        assert issues[0] == {"type": "speech", "count": 3}
        assert len(issues) == 3

    def test_recent_recordings_limited_to_five(self):
        report = discipline_report(room("3A", [1] * 8))

        assert len(report["classrooms"][0]["recent_recordings"]) == 5

    def test_summary_and_recommendations(self):
        summaries = room("3A", [0, 0]) + room("3B", [4, 5])

        summary = discipline_report(summaries)["summary"]

        assert summary["total_recordings"] == 4
        assert summary["total_warnings"] == 9
        assert summary["overall_avg_warnings"] == 2.25
        assert summary["overall_level"] == "fair"
        assert len(summary["recommendations"]) == 2
        assert "3A" in summary["recommendations"][1]

    def test_calm_history_has_no_recommendations(self):
        summary = discipline_report(room("3A", [0, 1]))["summary"]

        assert summary["overall_level"] == "excellent"
        assert summary["recommendations"] == []

    def test_period_filter(self):
        summaries = room("3A", [1], day=1) + room("3A", [5], day=3) + room("3A", [2], day=5)

        report = discipline_report(
            summaries,
            start_date=datetime.date(2025, 3, 2),
            end_date=datetime.date(2025, 3, 4),
            now=datetime.datetime(2025, 3, 6, 8, 0),
        )

        assert report["summary"]["total_recordings"] == 1
        assert report["summary"]["total_warnings"] == 5
        assert report["report_info"]["period"] == {"start": "2025-03-02", "end": "2025-03-04"}
        assert report["report_info"]["generated_at"] == "2025-03-06T08:00:00"

    def test_period_without_recordings(self):
        report = discipline_report(room("3A", [1], day=1), start_date=datetime.date(2025, 4, 1))

        assert report["has_data"] is False
