"""
Monitoring session.

Single Responsibility: Own every piece of mutable state of one monitoring run
and drive it one tick at a time.

Tick order:
    1. fire due timers (auto-stop)
    2. estimate loudness (an invalid frame skips the tick)
    3. evaluate warnings and escalate to recording
    4. classify the frame (throttled, best-effort)
    5. arm/disarm the auto-stop timer
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from logger import get_logger
from .audio import AudioSource, ArecordAudioSource, Frame, display_level, estimate_loudness
from .classifier import NoiseClassification, NoiseClassifier
from .detector import MonitorState, WarningEvent, WarningStateMachine
from .errors import InvalidFrame
from .media import LocalMediaCapture, MediaCapture
from .recorder import RecordingController, RecordingResult
from .repository import RecordingRepository
from .settings import MonitorSettings
from .timers import TickScheduler

log = get_logger(__name__)


@dataclass
class TickResult:
    """What happened during one tick."""
    loudness: int
    level: str
    state: MonitorState
    warning_count: int
    event: Optional[WarningEvent] = None
    recording_started: bool = False
    classification: Optional[NoiseClassification] = None
    stopped: Optional[RecordingResult] = None
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "loudness": self.loudness,
            "level": self.level,
            "state": self.state.value,
            "warning_count": self.warning_count,
            "event": self.event.to_dict() if self.event else None,
            "recording_started": self.recording_started,
            "classification": self.classification.to_dict() if self.classification else None,
            "stopped": self.stopped.reason if self.stopped else None,
            "skipped": self.skipped,
        }


class MonitoringSession:
    """
    One monitoring run.

    All state lives here and is only touched from the loop that calls
    `tick()`; timer callbacks fire inside `tick()` at frame boundaries.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        source: AudioSource,
        media: MediaCapture,
        repository: Optional[RecordingRepository] = None,
        classroom_id: Optional[str] = None,
        scheduler: Optional[TickScheduler] = None,
    ):
        """
        Initialize a monitoring session.

        Args:
            settings: Monitoring thresholds and timings
            source: Audio input
            media: Media capture used while recording
            repository: History store for finished recordings (None disables saving)
            classroom_id: Classroom stamped on saved recordings
            scheduler: Timer scheduler (a new one by default)
        """
        self.settings = settings
        self.source = source
        self.scheduler = scheduler or TickScheduler()

        self.machine = WarningStateMachine(settings)
        self.classifier = NoiseClassifier(settings.classification_interval_sec)
        self.controller = RecordingController(
            media,
            repository,
            self.scheduler,
            settings,
            classroom_id=classroom_id,
        )

        self.loudness = 0
        self._running = False

    @classmethod
    def from_config(cls, config: dict) -> "MonitoringSession":
        """Build a session with the arecord source, local media capture and CSV history."""
        return cls(
            MonitorSettings.from_config(config),
            ArecordAudioSource(config),
            LocalMediaCapture(config),
            RecordingRepository(config),
            classroom_id=config["history"].get("classroom_id"),
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> MonitorState:
        return self.controller.state

    @property
    def warning_count(self) -> int:
        return self.machine.warning_count

    def start(self) -> None:
        """Open the audio source; CaptureUnavailable propagates."""
        self.source.start()
        self._running = True
        log.info(
            f"Monitoring started: threshold {self.settings.threshold_db} dB, "
            f"max {self.settings.max_warnings} warnings"
        )

    def tick(self, now: float) -> Optional[TickResult]:
        """
        Read one capture step and process it.

        Returns:
            TickResult, or None if the audio stream ended
        """
        chunk = self.source.read_chunk()
        if chunk is None:
            return None

        result = self.process(
            self.source.next_magnitude_frame(),
            self.source.next_time_domain_frame(),
            now,
        )
        self.controller.feed(chunk)
        return result

    def process(self, magnitudes: np.ndarray, frame: Optional[Frame], now: float) -> TickResult:
        """
        Process one tick worth of audio.

        Args:
            magnitudes: Byte frequency-magnitude buffer
            frame: Time-domain frame for classification (None skips classification)
            now: Monotonic time in seconds

        Returns:
            TickResult
        """
        previous = self.controller.last_result
        self.scheduler.run_due(now)
        stopped = self.controller.last_result if self.controller.last_result is not previous else None

        try:
            loudness = estimate_loudness(magnitudes)
        except InvalidFrame as e:
            log.debug(f"Skipping tick: {e}")
            return TickResult(
                loudness=self.loudness,
                level=display_level(self.loudness, self.settings.threshold_db, self.settings.warning_band_db),
                state=self.state,
                warning_count=self.warning_count,
                stopped=stopped,
                skipped=True,
            )
        self.loudness = loudness

        event, escalate = self.machine.process(loudness, now, self.controller.is_recording)
        started = False
        if escalate:
            started = self.controller.start(self.machine.warning_count, now) is not None

        classification = self.classifier.classify_frame(frame, now)
        if classification is not None:
            self.controller.note_classification(classification, loudness, now)

        self.controller.update_release(loudness, now)

        return TickResult(
            loudness=loudness,
            level=display_level(loudness, self.settings.threshold_db, self.settings.warning_band_db),
            state=self.state,
            warning_count=self.warning_count,
            event=event,
            recording_started=started,
            classification=classification,
            stopped=stopped,
        )

    def reset_warnings(self) -> None:
        """Operator action: clear the warning counter."""
        self.machine.reset()

    def stop_recording(self, now: float) -> Optional[RecordingResult]:
        """Operator action: stop the active recording now."""
        return self.controller.stop(now, reason="manual")

    def stop(self, now: float) -> Optional[RecordingResult]:
        """Stop monitoring, finishing any active recording and releasing the audio source."""
        self._running = False
        try:
            result = self.controller.stop(now, reason="shutdown")
        finally:
            self.source.stop()
        log.info("Monitoring stopped")
        return result

    def update_settings(self, **changes) -> MonitorSettings:
        """
        Apply runtime changes to the monitoring settings.

        Raises:
            InvalidConfiguration: If a value is out of range or unknown; nothing is applied
        """
        settings = self.settings.with_changes(**changes)
        self.settings = settings
        self.machine.settings = settings
        self.controller.settings = settings
        self.classifier.interval_sec = settings.classification_interval_sec
        log.info(f"Monitoring settings updated: {changes}")
        return settings
