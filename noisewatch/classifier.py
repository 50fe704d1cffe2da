"""
Rule-based noise type classification.

The classifier is a fixed, ordered rule table evaluated over a FeatureVector.
The first matching rule wins; ambient noise is the fallback. It is not a
trained model: the same features always give the same label and confidence.

Single Responsibility: All classification logic is contained here.
"""
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, Optional, Tuple

from logger import get_logger
from .audio import Frame
from .errors import ClassificationFailure
from .features import FeatureVector, extract_features

log = get_logger(__name__)

FEATURE_HISTORY_SIZE = 100


class NoiseType(str, Enum):
    """Closed label set of the classifier."""
    SPEECH = "speech"
    FURNITURE = "furniture"
    RINGTONE = "ringtone"
    FOOTSTEPS = "footsteps"
    TYPING = "typing"
    AMBIENT = "ambient"


# type -> (label, english label, icon)
NOISE_TYPE_INFO: Dict[NoiseType, Tuple[str, str, str]] = {
    NoiseType.SPEECH: ("说话声", "Speech", "🗣️"),
    NoiseType.FURNITURE: ("桌椅移动", "Furniture move", "🪑"),
    NoiseType.RINGTONE: ("手机铃声", "Ringtone", "📱"),
    NoiseType.FOOTSTEPS: ("脚步声", "Footsteps", "👣"),
    NoiseType.TYPING: ("键盘声", "Typing", "⌨️"),
    NoiseType.AMBIENT: ("环境噪音", "Ambient", "🔊"),
}


@dataclass(frozen=True)
class NoiseClassification:
    """Result of classifying one frame."""
    type: NoiseType
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @property
    def label(self) -> str:
        return NOISE_TYPE_INFO[self.type][0]

    @property
    def label_en(self) -> str:
        return NOISE_TYPE_INFO[self.type][1]

    @property
    def icon(self) -> str:
        return NOISE_TYPE_INFO[self.type][2]

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "label": self.label,
            "label_en": self.label_en,
            "confidence": self.confidence,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class Rule:
    """One row of the rule table."""
    noise_type: NoiseType
    confidence: float
    matches: Callable[[FeatureVector], bool]


RULES: Tuple[Rule, ...] = (
    # Speech: moderate energy, high ZCR, centroid in the voice range
    Rule(NoiseType.SPEECH, 0.75, lambda f: (
        f.zero_crossing_rate > 0.1
        and 200 < f.spectral_centroid < 2000
        and f.rms > 0.01
    )),
    # Furniture: quiet, few crossings, low peak
    Rule(NoiseType.FURNITURE, 0.70, lambda f: (
        f.rms < 0.05
        and f.zero_crossing_rate < 0.05
        and f.peak_frequency < 500
    )),
    # Ringtone: loud, many crossings, high peak
    Rule(NoiseType.RINGTONE, 0.80, lambda f: (
        f.rms > 0.1
        and f.zero_crossing_rate > 0.15
        and f.peak_frequency > 2000
    )),
    # Footsteps: moderate energy and ZCR, low peak
    Rule(NoiseType.FOOTSTEPS, 0.65, lambda f: (
        0.03 < f.rms < 0.08
        and 0.05 < f.zero_crossing_rate < 0.1
        and f.peak_frequency < 1000
    )),
    # Typing: quiet, many crossings, high peak
    Rule(NoiseType.TYPING, 0.60, lambda f: (
        f.rms < 0.05
        and f.zero_crossing_rate > 0.12
        and f.peak_frequency > 1500
    )),
)

DEFAULT_CLASSIFICATION = NoiseClassification(NoiseType.AMBIENT, 0.50)


def classify_features(features: FeatureVector) -> NoiseClassification:
    """
    Evaluate the rule table in order.

    Args:
        features: Feature vector of one frame

    Returns:
        Classification of the first matching rule, or ambient noise
    """
    for rule in RULES:
        if rule.matches(features):
            return NoiseClassification(rule.noise_type, rule.confidence)
    return DEFAULT_CLASSIFICATION


class NoiseClassifier:
    """
    Throttled, failure-isolated classifier for the live loop.

    Classification is best-effort: errors are logged and swallowed so the
    loudness/warning path keeps running.
    """

    def __init__(self, interval_sec: float = 0.5, history_size: int = FEATURE_HISTORY_SIZE):
        self.interval_sec = interval_sec
        self.feature_history: Deque[FeatureVector] = deque(maxlen=history_size)
        self.last_result: Optional[NoiseClassification] = None
        self._last_run: Optional[float] = None

    def is_due(self, now: float) -> bool:
        return self._last_run is None or now - self._last_run >= self.interval_sec

    def classify(self, frame: Frame) -> NoiseClassification:
        """Classify one frame; raises ClassificationFailure on any error."""
        try:
            features = extract_features(frame.samples, frame.sample_rate)
            result = classify_features(features)
        except Exception as e:
            raise ClassificationFailure(f"Failed to classify frame: {e}") from e

        self.feature_history.append(features)
        return result

    def classify_frame(self, frame: Optional[Frame], now: float) -> Optional[NoiseClassification]:
        """
        Classify a frame if the throttle interval has elapsed.

        Returns:
            The new classification, or None when throttled or on failure
        """
        if frame is None or not self.is_due(now):
            return None

        self._last_run = now
        try:
            result = self.classify(frame)
        except ClassificationFailure as e:
            log.warning(f"Noise classification failed: {e}", exc_info=log.isEnabledFor(logging.DEBUG))
            return None

        self.last_result = result
        return result
