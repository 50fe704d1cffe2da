"""
Warning detection logic.

Single Responsibility: Decide when a loudness breach counts as a warning and
when accumulated warnings escalate to recording.
"""
import datetime
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Optional, Tuple

from logger import get_logger, log_event
from .settings import MonitorSettings

log = get_logger(__name__)

EVENT_LOG_SIZE = 100


class MonitorState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass
class WarningEvent:
    """An accepted threshold breach."""
    timestamp: datetime.datetime
    loudness: int
    threshold: float

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "loudness": self.loudness,
            "threshold": self.threshold,
        }


class WarningStateMachine:
    """
    Counts cooldown-separated threshold breaches and signals escalation.

    The warning counter survives recording start and stop; only `reset()`
    (an operator action) clears it. Once the counter has reached
    max_warnings, every further accepted warning escalates again.
    """

    def __init__(self, settings: MonitorSettings):
        """
        Initialize the state machine.

        Args:
            settings: Monitoring thresholds and timings
        """
        self.settings = settings

        # State
        self._warning_count = 0
        self._last_warning_time: Optional[float] = None
        self._events: Deque[WarningEvent] = deque(maxlen=EVENT_LOG_SIZE)

    def process(
        self,
        loudness: int,
        now: float,
        recording: bool
    ) -> Tuple[Optional[WarningEvent], bool]:
        """
        Evaluate one loudness sample.

        Args:
            loudness: Loudness estimate of the current tick
            now: Monotonic time in seconds
            recording: Whether a recording session is active

        Returns:
            (event, escalate): the accepted WarningEvent or None, and whether
            recording should start now
        """
        # Breaches during an active recording are suppressed
        if recording:
            return None, False

        threshold = self.settings.threshold_db
        if loudness < threshold:
            return None, False

        if self._last_warning_time is not None and now - self._last_warning_time < self.settings.cooldown_sec:
            return None, False

        self._last_warning_time = now
        self._warning_count += 1
        event = WarningEvent(
            timestamp=datetime.datetime.now(),
            loudness=loudness,
            threshold=threshold,
        )
        self._events.append(event)

        log_event(
            log, "warning", logging.WARNING,
            loudness=loudness,
            threshold=threshold,
            count=f"{self._warning_count}/{self.settings.max_warnings}",
        )

        escalate = self._warning_count >= self.settings.max_warnings
        if escalate:
            log_event(log, "escalate", logging.WARNING, count=self._warning_count)
        return event, escalate

    def reset(self) -> None:
        """Clear the warning counter (operator action)."""
        self._warning_count = 0
        log_event(log, "warnings_reset")

    @property
    def warning_count(self) -> int:
        return self._warning_count

    @property
    def last_warning_time(self) -> Optional[float]:
        return self._last_warning_time

    @property
    def events(self) -> List[WarningEvent]:
        """The most recent EVENT_LOG_SIZE warnings accepted in this monitoring session."""
        return list(self._events)
