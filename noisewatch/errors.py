"""
Error taxonomy for the noise monitor.

Single Responsibility: Name every failure the monitoring pipeline can surface.

Errors on the critical path (capture acquisition, explicit stop) propagate to
the caller. Errors on the observational path (classification, analytics) are
caught where they happen and logged.
"""


class NoiseMonitorError(Exception):
    """Base class for all noise monitor errors."""


class CaptureUnavailable(NoiseMonitorError, RuntimeError):
    """Audio or video device could not be opened (missing, busy, no permission)."""


class InvalidFrame(NoiseMonitorError, ValueError):
    """Sample buffer is empty or malformed; the tick is skipped."""


class ClassificationFailure(NoiseMonitorError):
    """Feature extraction or rule evaluation failed."""


class StorageFailure(NoiseMonitorError, OSError):
    """Persisting a finished recording failed; local media is still available."""


class InvalidConfiguration(NoiseMonitorError, ValueError):
    """Configuration value is out of range and was not applied."""
