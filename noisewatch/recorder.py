"""
Recording lifecycle.

Single Responsibility: Start a recording on escalation, stop it after the
room has been quiet long enough (or on operator request) and hand the result
to the history store.
"""
import datetime
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from logger import get_logger, log_event
from .classifier import NoiseClassification
from .detector import MonitorState
from .errors import CaptureUnavailable, StorageFailure
from .media import MediaArtifacts, MediaCapture, MediaTrack, SessionHandle
from .repository import RecordingRepository
from .settings import MonitorSettings
from .timers import TickScheduler, TimerHandle

log = get_logger(__name__)

# About five minutes of samples at the default classification interval
NOISE_SAMPLE_LIMIT = 600


@dataclass
class RecordingSession:
    """An active recording."""
    handle: SessionHandle
    started_at: float  # monotonic seconds
    started_wall: datetime.datetime
    warning_count: int
    threshold: float
    has_video: bool
    state: MonitorState = MonitorState.RECORDING
    noise_types: Dict[str, float] = field(default_factory=dict)
    noise_samples: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=NOISE_SAMPLE_LIMIT))

    def noise_type_entries(self) -> List[Dict[str, Any]]:
        """Detected noise types with their highest confidence."""
        return [{"type": t, "confidence": c} for t, c in self.noise_types.items()]


@dataclass
class RecordingResult:
    """Outcome of a stopped recording."""
    reason: str
    duration_sec: float
    artifacts: MediaArtifacts
    record: Dict[str, Any]
    saved: bool
    error: Optional[str] = None


class RecordingController:
    """
    Owns the recording session and its single auto-stop timer.

    Release hysteresis: while recording, loudness below
    threshold - release_margin arms a stop timer of stop_delay; loudness at or
    above that level disarms it. At most one stop timer is pending.
    """

    def __init__(
        self,
        media: MediaCapture,
        repository: Optional[RecordingRepository],
        scheduler: TickScheduler,
        settings: MonitorSettings,
        classroom_id: Optional[str] = None,
        audio_device: str = "default",
    ):
        self.media = media
        self.repository = repository
        self.scheduler = scheduler
        self.settings = settings
        self.classroom_id = classroom_id
        self.audio_device = audio_device

        self._session: Optional[RecordingSession] = None
        self._stop_timer: Optional[TimerHandle] = None
        self.last_result: Optional[RecordingResult] = None

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> MonitorState:
        return MonitorState.RECORDING if self._session is not None else MonitorState.IDLE

    @property
    def stop_pending(self) -> bool:
        return self._stop_timer is not None and self._stop_timer.pending

    def start(self, warning_count: int, now: float) -> Optional[RecordingSession]:
        """
        Start recording.

        Args:
            warning_count: Warning count that triggered the recording
            now: Monotonic time in seconds

        Returns:
            The new RecordingSession, or None if one is already active

        Raises:
            CaptureUnavailable: If the audio track cannot be captured
        """
        if self._session is not None:
            log.debug("Recording already active, ignoring escalation")
            return None

        tracks = [MediaTrack("audio", self.audio_device)]
        try:
            tracks.append(self.media.acquire_video())
        except CaptureUnavailable as e:
            log.warning(f"Video unavailable, recording audio only: {e}")

        try:
            handle = self.media.start(tracks)
        except CaptureUnavailable as e:
            if len(tracks) == 1:
                raise
            log.warning(f"Capture failed with video, retrying audio only: {e}")
            handle = self.media.start(tracks[:1])

        has_video = handle.has_video
        self._session = RecordingSession(
            handle=handle,
            started_at=now,
            started_wall=datetime.datetime.now(),
            warning_count=warning_count,
            threshold=self.settings.threshold_db,
            has_video=has_video,
        )
        log_event(log, "recording_started", logging.WARNING, warnings=warning_count, video=has_video)
        return self._session

    def feed(self, chunk: Optional[bytes]) -> None:
        """Pass one captured audio chunk to the active recording."""
        if self._session is not None and chunk:
            self.media.feed(self._session.handle, chunk)

    def note_classification(
        self,
        result: NoiseClassification,
        loudness: Optional[int] = None,
        now: Optional[float] = None
    ) -> None:
        """
        Record a classification made while recording.

        The highest confidence per type goes into the summary. With a
        loudness, the classification is also kept as a timestamped noise
        sample (the oldest samples are dropped past NOISE_SAMPLE_LIMIT).

        Args:
            result: Classification of the current frame
            loudness: Loudness estimate of the same tick
            now: Monotonic time in seconds
        """
        session = self._session
        if session is None:
            return
        key = result.type.value
        session.noise_types[key] = max(session.noise_types.get(key, 0.0), result.confidence)

        if loudness is not None:
            offset = 0.0 if now is None else max(0.0, now - session.started_at)
            session.noise_samples.append({
                "timestamp": session.started_wall + datetime.timedelta(seconds=offset),
                "loudness": loudness,
                "noise_type": key,
                "confidence": result.confidence,
            })

    def update_release(self, loudness: int, now: float) -> None:
        """
        Arm or disarm the auto-stop timer for the current loudness.

        Args:
            loudness: Loudness estimate of the current tick
            now: Monotonic time in seconds
        """
        if self._session is None:
            return

        if loudness < self.settings.release_level:
            if not self.stop_pending:
                self._stop_timer = self.scheduler.call_later(
                    self.settings.stop_delay_sec, self._on_stop_timer, now
                )
                log.debug(f"Quiet ({loudness} dB), auto-stop in {self.settings.stop_delay_sec:.1f}s")
        elif self.stop_pending:
            self._cancel_stop_timer()
            log.debug(f"Noise resumed ({loudness} dB), auto-stop cancelled")

    def _cancel_stop_timer(self) -> None:
        if self._stop_timer is not None:
            self._stop_timer.cancel()
            self._stop_timer = None

    def _on_stop_timer(self, fire_time: float) -> None:
        self._stop_timer = None
        if self._session is not None:
            self.stop(fire_time, reason="auto")

    def stop(self, now: float, reason: str = "manual") -> Optional[RecordingResult]:
        """
        Stop the active recording and persist its summary.

        A storage failure is logged and reported in the result; the recording
        is stopped either way and the media files stay on disk.

        Args:
            now: Monotonic time in seconds
            reason: "auto", "manual" or "shutdown"

        Returns:
            RecordingResult, or None if nothing was recording
        """
        if self._session is None:
            return None

        self._cancel_stop_timer()
        session = self._session
        self._session = None

        artifacts = self.media.stop(session.handle)
        duration = max(0.0, now - session.started_at)

        record = {
            "timestamp": session.started_wall,
            "threshold": session.threshold,
            "warning_count": session.warning_count,
            "classroom_id": self.classroom_id,
            "duration_sec": duration,
            "audio_file": artifacts.audio_file,
            "audio_size": artifacts.audio_size,
            "video_file": artifacts.video_file,
            "video_size": artifacts.video_size,
            "note": reason,
            "noise_types": session.noise_type_entries(),
            "noise_records": list(session.noise_samples),
        }

        log_event(
            log, "recording_stopped", logging.WARNING,
            reason=reason,
            duration_sec=duration,
            noise_samples=len(session.noise_samples),
        )

        result = RecordingResult(reason, duration, artifacts, record, saved=False)
        if self.repository is not None:
            try:
                self.repository.save(record)
                result.saved = True
            except StorageFailure as e:
                log.warning(f"Failed to save recording, files are still available locally: {e}")
                result.error = str(e)

        self.last_result = result
        return result
