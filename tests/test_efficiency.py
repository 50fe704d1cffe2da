"""
Tests for noisewatch.efficiency module.
"""
import datetime

import pytest

from noisewatch.efficiency import analyze_efficiency, warning_trend
from noisewatch.settings import AnalyticsSettings

from tests.conftest import make_summary


def at_hour(hour, warnings, **kwargs):
    return make_summary(warnings, timestamp=datetime.datetime(2025, 3, 3, hour, 30), **kwargs)


def newest_first(counts):
    """Summaries one hour apart, first element newest."""
    start = datetime.datetime(2025, 3, 3, 20, 0)
    return [
        make_summary(c, timestamp=start - datetime.timedelta(hours=i))
        for i, c in enumerate(counts)
    ]


class TestAnalyzeEfficiency:
    """Test the full analysis."""

    def test_empty_history(self):
        result = analyze_efficiency([])

        assert result["has_data"] is False
        assert result["message"]

    def test_slot_bucketing(self):
        summaries = [
            at_hour(5, 9),    # before every slot
            at_hour(6, 1),
            at_hour(11, 3),
            at_hour(12, 4),
            at_hour(21, 0),
            at_hour(22, 9),   # after every slot
        ]

        slots = analyze_efficiency(summaries)["time_slot_analysis"]

        assert list(slots) == ["morning", "afternoon", "evening"]
        assert slots["morning"]["records"] == 2
        assert slots["morning"]["avg_warnings"] == 2.0
        assert slots["morning"]["efficiency"] == 8.0
        assert slots["afternoon"]["records"] == 1
        assert slots["evening"]["total_warnings"] == 0
        assert slots["evening"]["efficiency"] == 10.0

    def test_alternative_slots(self):
        """Slots starting at 8 leave 7 o'clock recordings out."""
        settings = AnalyticsSettings(time_slots={"morning": (8, 12), "afternoon": (12, 18), "evening": (18, 22)})

        slots = analyze_efficiency([at_hour(7, 1), at_hour(9, 2)], settings)["time_slot_analysis"]

        assert slots["morning"]["records"] == 1

    def test_best_slot_skips_empty(self):
        result = analyze_efficiency([at_hour(9, 3), at_hour(14, 1)])

        assert result["best_time_slot"]["slot"] == "afternoon"
        assert result["best_time_slot"]["avg_warnings"] == 1.0

    def test_best_slot_tie_goes_to_earlier_slot(self):
        result = analyze_efficiency([at_hour(9, 2), at_hour(19, 2)])

        assert result["best_time_slot"]["slot"] == "morning"

    def test_no_slot_has_records(self):
        result = analyze_efficiency([at_hour(3, 2)])

        assert result["best_time_slot"] is None

    def test_noisy_slot_recommendation(self):
        result = analyze_efficiency([at_hour(9, 3), at_hour(10, 4)])

        assert any("Morning" in r for r in result["recommendations"])

    def test_all_good(self):
        result = analyze_efficiency([at_hour(9, 1)])

        assert result["recommendations"] == ["Overall noise level is good, keep it up"]

    def test_noise_type_stats(self):
        summaries = [
            at_hour(9, 1, noise_types=[{"type": "speech", "confidence": 0.75}]),
            at_hour(10, 1, noise_types=[{"type": "speech", "confidence": 0.75}, {"type": "typing", "confidence": 0.6}]),
        ]

        result = analyze_efficiency(summaries)

        assert result["noise_type_stats"]["speech"]["count"] == 2
        assert result["noise_type_stats"]["speech"]["avg_confidence"] == 0.75
        assert result["noise_type_stats"]["typing"]["count"] == 1
        assert "Main noise type: Speech (seen 2 times)" in result["recommendations"]

    def test_summary(self):
        summaries = [at_hour(9, 1, duration_sec=30.0), at_hour(10, 2, duration_sec=45.0)]

        summary = analyze_efficiency(summaries)["summary"]

        assert summary["overall_avg_warnings"] == 1.5
        assert summary["total_duration_sec"] == 75.0
        assert summary["period"] == "last 30 days"


class TestWarningTrend:
    """Test recent-versus-older comparison (window 10, margin 10%)."""

    def test_rising(self):
        trend = warning_trend(newest_first([3] * 10 + [1] * 10), AnalyticsSettings())

        assert trend["direction"] == "rising"
        assert trend["value"] == pytest.approx(200.0)
        assert trend["recent_avg"] == 3.0
        assert trend["older_avg"] == 1.0

    def test_falling(self):
        trend = warning_trend(newest_first([1] * 10 + [2] * 10), AnalyticsSettings())

        assert trend["direction"] == "falling"
        assert trend["value"] == pytest.approx(-50.0)

    def test_within_margin_is_stable(self):
        trend = warning_trend(newest_first([21] * 10 + [20] * 10), AnalyticsSettings())

        assert trend["direction"] == "stable"
        assert trend["value"] == pytest.approx(5.0)

    def test_no_older_records(self):
        trend = warning_trend(newest_first([3] * 5), AnalyticsSettings())

        assert trend["direction"] == "stable"
        assert trend["older_avg"] == trend["recent_avg"]

    def test_older_zero(self):
        trend = warning_trend(newest_first([2] * 10 + [0] * 10), AnalyticsSettings())

        assert trend["direction"] == "rising"
        assert trend["value"] is None

    def test_only_two_windows_compared(self):
        """Records beyond 2 * window are ignored."""
        trend = warning_trend(newest_first([1] * 10 + [1] * 10 + [50] * 10), AnalyticsSettings())

        assert trend["direction"] == "stable"

    def test_trend_recommendation(self):
        result = analyze_efficiency(newest_first([3] * 10 + [1] * 10))

        assert any("trending up" in r for r in result["recommendations"])
