"""
Tests for noisewatch.classifier module.

Tests the ordered rule table and the throttled live classifier.
"""
import pytest
import numpy as np

import noisewatch.classifier as classifier_module
from noisewatch.audio import Frame
from noisewatch.classifier import (
    DEFAULT_CLASSIFICATION,
    RULES,
    NoiseClassification,
    NoiseClassifier,
    NoiseType,
    classify_features,
)
from noisewatch.errors import ClassificationFailure
from noisewatch.features import FeatureVector

from tests.conftest import TEST_SAMPLE_RATE, create_sine_frame


def features(rms=0.0, zcr=0.0, centroid=0.0, peak=0.0) -> FeatureVector:
    return FeatureVector(
        rms=rms,
        zero_crossing_rate=zcr,
        spectral_centroid=centroid,
        spectral_rolloff=0.0,
        peak_frequency=peak,
    )


class TestRuleTable:
    """Test rule matching and order."""

    def test_rule_order(self):
        assert [r.noise_type for r in RULES] == [
            NoiseType.SPEECH,
            NoiseType.FURNITURE,
            NoiseType.RINGTONE,
            NoiseType.FOOTSTEPS,
            NoiseType.TYPING,
        ]

    @pytest.mark.parametrize("vector,expected,confidence", [
        (features(rms=0.05, zcr=0.15, centroid=800, peak=600), NoiseType.SPEECH, 0.75),
        (features(rms=0.02, zcr=0.01, centroid=100, peak=100), NoiseType.FURNITURE, 0.70),
        (features(rms=0.2, zcr=0.2, centroid=2500, peak=3000), NoiseType.RINGTONE, 0.80),
        (features(rms=0.06, zcr=0.07, centroid=100, peak=500), NoiseType.FOOTSTEPS, 0.65),
        (features(rms=0.02, zcr=0.2, centroid=2500, peak=3000), NoiseType.TYPING, 0.60),
    ])
    def test_each_rule(self, vector, expected, confidence):
        result = classify_features(vector)

        assert result.type == expected
        assert result.confidence == confidence

    def test_first_match_wins(self):
        """A vector matching speech and ringtone is speech."""
        vector = features(rms=0.2, zcr=0.2, centroid=1500, peak=3000)
        assert classify_features(vector).type == NoiseType.SPEECH

    def test_fallback_is_ambient(self):
        result = classify_features(features(rms=0.5, zcr=0.01, centroid=100, peak=100))
        assert result == DEFAULT_CLASSIFICATION
        assert result.type == NoiseType.AMBIENT
        assert result.confidence == 0.50

    def test_boundaries_are_strict(self):
        """zcr exactly 0.1 does not satisfy the speech rule."""
        vector = features(rms=0.5, zcr=0.1, centroid=1000, peak=100)
        assert classify_features(vector).type == NoiseType.AMBIENT

    def test_deterministic(self):
        vector = features(rms=0.05, zcr=0.15, centroid=800, peak=600)
        assert classify_features(vector) == classify_features(vector)

    def test_sine_is_speech(self):
        """A 1 kHz tone at half scale falls in the speech band."""
        frame = Frame(samples=create_sine_frame(1000, amplitude=0.5), sample_rate=TEST_SAMPLE_RATE)
        result = NoiseClassifier().classify(frame)
        assert result.type == NoiseType.SPEECH


class TestNoiseClassification:
    """Test the result object."""

    def test_confidence_range(self):
        with pytest.raises(ValueError):
            NoiseClassification(NoiseType.SPEECH, 1.5)

    def test_to_dict(self):
        data = NoiseClassification(NoiseType.TYPING, 0.6).to_dict()

        assert data["type"] == "typing"
        assert data["label_en"] == "Typing"
        assert data["confidence"] == 0.6
        assert data["icon"]
        assert data["label"]


class TestNoiseClassifier:
    """Test throttling, history and failure isolation."""

    def frame(self):
        return Frame(samples=create_sine_frame(), sample_rate=TEST_SAMPLE_RATE)

    def test_throttled(self):
        clf = NoiseClassifier(interval_sec=0.5)

        assert clf.classify_frame(self.frame(), 0.0) is not None
        assert clf.classify_frame(self.frame(), 0.25) is None
        assert clf.classify_frame(self.frame(), 0.5) is not None

    def test_none_frame(self):
        assert NoiseClassifier().classify_frame(None, 0.0) is None

    def test_history_bounded(self):
        clf = NoiseClassifier(interval_sec=0.0, history_size=100)
        for i in range(120):
            clf.classify_frame(self.frame(), float(i))

        assert len(clf.feature_history) == 100

    def test_classify_wraps_errors(self, monkeypatch):
        def broken(samples, sample_rate):
            raise RuntimeError("boom")

        monkeypatch.setattr(classifier_module, "extract_features", broken)

        with pytest.raises(ClassificationFailure):
            NoiseClassifier().classify(self.frame())

    def test_classify_frame_absorbs_failure(self, monkeypatch):
        """A failing classification returns None and keeps the last result."""
        clf = NoiseClassifier(interval_sec=0.0)
        first = clf.classify_frame(self.frame(), 0.0)

        def broken(samples, sample_rate):
            raise np.linalg.LinAlgError("boom")

        monkeypatch.setattr(classifier_module, "extract_features", broken)

        assert clf.classify_frame(self.frame(), 1.0) is None
        assert clf.last_result == first
