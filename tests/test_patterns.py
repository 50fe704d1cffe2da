"""
Tests for noisewatch.patterns module.
"""
import datetime

import pytest

from noisewatch.patterns import noise_patterns
from noisewatch.repository import NoiseRecord


def sample(hour, loudness, noise_type="speech", confidence=0.75, day=3, minute=0):
    timestamp = datetime.datetime(2025, 3, day, hour, minute)
    return NoiseRecord(
        recording_timestamp=timestamp.replace(minute=0),
        timestamp=timestamp,
        loudness=loudness,
        noise_type=noise_type,
        confidence=confidence,
        classroom_id="3A",
    )


class TestNoisePatterns:
    """Test hourly, daily and type patterns."""

    def test_no_samples(self):
        result = noise_patterns([])

        assert result["has_data"] is False
        assert result["message"]

    def test_hourly_patterns(self):
        records = [sample(9, 70), sample(9, 90, "typing", minute=5), sample(9, 80, minute=10), sample(13, 50)]

        hourly = noise_patterns(records)["hourly_patterns"]

        assert len(hourly) == 24
        assert hourly[9]["count"] == 3
        assert hourly[9]["avg_loudness"] == 80.0
        assert hourly[9]["noise_level"] == "noisy"
        assert hourly[9]["label"] == "9:00-10:00"
        assert hourly[9]["main_noise_types"][0] == {"type": "speech", "count": 2, "percentage": 66.7}
        assert hourly[13]["noise_level"] == "quiet"
        assert hourly[0] == {
            "hour": 0,
            "label": "0:00-1:00",
            "count": 0,
            "avg_loudness": 0.0,
            "main_noise_types": [],
            "noise_level": "no data",
        }

    def test_daily_patterns(self):
        records = [sample(9, 60, day=4), sample(10, 80, day=4), sample(9, 70, day=3)]

        daily = noise_patterns(records)["daily_patterns"]

        assert [d["date"] for d in daily] == ["2025-03-03", "2025-03-04"]
        assert daily[1]["avg_loudness"] == 70.0
        assert daily[1]["peak_loudness"] == 80.0
        assert daily[0]["day_of_week"] == "Monday"

    def test_noise_type_patterns(self):
        records = [
            sample(9, 70, "typing", 0.6),
            sample(10, 80, "speech", 0.75),
            sample(10, 90, "speech", 0.85, minute=30),
            sample(14, 60, None),
        ]

        by_type = noise_patterns(records)["noise_type_patterns"]

        assert [t["type"] for t in by_type] == ["speech", "typing"]
        speech = by_type[0]
        assert speech["count"] == 2
        assert speech["percentage"] == 50.0
        assert speech["avg_loudness"] == 85.0
        assert speech["avg_confidence"] == pytest.approx(0.8)
        assert speech["label"] == "Speech"
        assert speech["peak_hours"] == [{"hour": 10, "count": 2, "percentage": 100.0}]

    def test_peak_hours_and_insights(self):
        records = [sample(8, 60), sample(10, 85), sample(15, 70)]

        result = noise_patterns(records)

        assert [h["hour"] for h in result["peak_hours"]] == [10, 15, 8]
        assert result["insights"]["noisiest_hour"]["hour"] == 10
        assert result["insights"]["quietest_hour"]["hour"] == 8
        assert result["insights"]["most_common_noise"]["type"] == "speech"

    def test_summary(self):
        result = noise_patterns([sample(9, 60), sample(10, 90)], days=7)

        assert result["summary"] == {
            "total_records": 2,
            "analysis_period": "last 7 days",
            "avg_loudness": 75.0,
            "peak_loudness": 90,
        }


class TestPatternRecommendations:

    def test_loud_hour_and_dominant_type(self):
        recommendations = noise_patterns([sample(10, 85), sample(10, 88)])["recommendations"]

        assert recommendations[0].startswith("10:00-11:00 is the loudest hour")
        assert "Speech (100.0% of samples)" in recommendations[1]
        assert "morning" in recommendations[2]

    def test_morning_and_afternoon_peaks(self):
        recommendations = noise_patterns([sample(9, 76, "typing"), sample(15, 77, "speech")])["recommendations"]

        assert any("morning and in the afternoon" in r for r in recommendations)

    def test_afternoon_peak_only(self):
        recommendations = noise_patterns([sample(15, 77)])["recommendations"]

        assert recommendations[-1] == "Noise peaks in the afternoon, tighten classroom discipline"

    def test_calm_room(self):
        records = [sample(9, 50, "speech"), sample(10, 55, "typing"), sample(11, 52, "ambient"), sample(12, 51, "footsteps")]

        assert noise_patterns(records)["recommendations"] == []
