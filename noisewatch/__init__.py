"""
Core domain models and interfaces for the classroom noise monitor.

This module follows SOLID principles:
- Single Responsibility: Each class has one clear purpose
- Open/Closed: Audio and media devices are pluggable behind small interfaces
- Dependency Inversion: The monitoring session depends on abstractions
"""

from .errors import (
    NoiseMonitorError,
    CaptureUnavailable,
    InvalidFrame,
    ClassificationFailure,
    StorageFailure,
    InvalidConfiguration,
)
from .settings import MonitorSettings, AnalyticsSettings, validate_monitoring
from .audio import (
    Frame,
    AudioSource,
    ArecordAudioSource,
    estimate_loudness,
    display_level,
    byte_frequency_data,
)
from .features import FeatureVector, extract_features, direct_dft_magnitudes, hz_to_mel
from .classifier import (
    NoiseType,
    NoiseClassification,
    NoiseClassifier,
    classify_features,
    RULES,
)
from .detector import MonitorState, WarningEvent, WarningStateMachine
from .timers import TickScheduler, TimerHandle, ManualClock, monotonic_clock
from .media import MediaCapture, LocalMediaCapture, MediaTrack, SessionHandle, MediaArtifacts
from .repository import RecordingRepository, HistoricalRecordingSummary, NoiseRecord, filter_recent
from .recorder import RecordingController, RecordingSession, RecordingResult
from .session import MonitoringSession, TickResult
from .recommender import recommend_threshold, threshold_stats
from .efficiency import analyze_efficiency
from .discipline import discipline_report
from .patterns import noise_patterns

__all__ = [
    # Errors
    'NoiseMonitorError',
    'CaptureUnavailable',
    'InvalidFrame',
    'ClassificationFailure',
    'StorageFailure',
    'InvalidConfiguration',
    # Settings
    'MonitorSettings',
    'AnalyticsSettings',
    'validate_monitoring',
    # Audio
    'Frame',
    'AudioSource',
    'ArecordAudioSource',
    'estimate_loudness',
    'display_level',
    'byte_frequency_data',
    # Features
    'FeatureVector',
    'extract_features',
    'direct_dft_magnitudes',
    'hz_to_mel',
    # Classifier
    'NoiseType',
    'NoiseClassification',
    'NoiseClassifier',
    'classify_features',
    'RULES',
    # Detector
    'MonitorState',
    'WarningEvent',
    'WarningStateMachine',
    # Timers
    'TickScheduler',
    'TimerHandle',
    'ManualClock',
    'monotonic_clock',
    # Media
    'MediaCapture',
    'LocalMediaCapture',
    'MediaTrack',
    'SessionHandle',
    'MediaArtifacts',
    # Repository
    'RecordingRepository',
    'HistoricalRecordingSummary',
    'NoiseRecord',
    'filter_recent',
    # Recording
    'RecordingController',
    'RecordingSession',
    'RecordingResult',
    # Session
    'MonitoringSession',
    'TickResult',
    # Analytics
    'recommend_threshold',
    'threshold_stats',
    'analyze_efficiency',
    'discipline_report',
    'noise_patterns',
]
