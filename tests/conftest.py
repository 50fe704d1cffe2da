"""
Pytest configuration and shared fixtures.

This module provides:
- Common fixtures for test configuration
- Fake audio source and media capture devices
- Helper functions for test data creation
- Constants used across tests
"""
import datetime
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import config_loader
import pytest
import numpy as np

from noisewatch.audio import AudioSource, Frame, LOUDNESS_SCALE
from noisewatch.errors import CaptureUnavailable, StorageFailure
from noisewatch.media import MediaArtifacts, MediaCapture, MediaTrack, SessionHandle
from noisewatch.repository import HistoricalRecordingSummary
from noisewatch.settings import MonitorSettings

# Test constants
TEST_SAMPLE_RATE = 16000
TEST_FREQUENCY = 1000  # Hz, bin-aligned for 512-sample frames at 16 kHz
TEST_FRAME_SIZE = 512
INT16_FULL_SCALE = 32768.0


@pytest.fixture
def project_root_path():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config(tmp_path):
    """Default configuration with all file paths inside tmp_path."""
    cfg = config_loader.get_default_config()
    cfg["recording"]["output_dir"] = str(tmp_path / "recordings")
    cfg["recording"]["video_device"] = None
    cfg["history"]["history_file"] = str(tmp_path / "data" / "recordings.csv")
    return cfg


@pytest.fixture
def settings():
    """Default monitoring settings (threshold 80, 3 warnings, 2 s cooldown)."""
    return MonitorSettings()


@pytest.fixture
def media():
    return FakeMediaCapture()


# Fakes

class FakeAudioSource(AudioSource):
    """Audio source replaying a list of loudness values."""

    def __init__(self, loudness_values: List[int], sample_rate: int = TEST_SAMPLE_RATE, fail: bool = False):
        self.sample_rate = sample_rate
        self._values = list(loudness_values)
        self._current: Optional[int] = None
        self.fail = fail
        self.started = False
        self.stopped = False

    def start(self) -> None:
        if self.fail:
            raise CaptureUnavailable("Permission denied")
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def read_chunk(self) -> Optional[bytes]:
        if not self._values:
            return None
        self._current = self._values.pop(0)
        return b"\x00\x00" * 16

    def next_magnitude_frame(self) -> np.ndarray:
        return magnitudes_for(self._current)

    def next_time_domain_frame(self) -> Frame:
        return Frame(samples=create_sine_frame(), sample_rate=self.sample_rate)

    def is_running(self) -> bool:
        return self.started and not self.stopped


class FakeMediaCapture(MediaCapture):
    """Media capture that records calls instead of touching devices."""

    def __init__(self, video_fails: bool = False, audio_fails: bool = False, video_start_fails: bool = False):
        self.video_fails = video_fails
        self.audio_fails = audio_fails
        self.video_start_fails = video_start_fails
        self.started: List[SessionHandle] = []
        self.stopped: List[SessionHandle] = []
        self.fed: List[bytes] = []

    def acquire_video(self) -> MediaTrack:
        if self.video_fails:
            raise CaptureUnavailable("No camera")
        return MediaTrack("video", "/dev/video0")

    def start(self, tracks: List[MediaTrack]) -> SessionHandle:
        if self.audio_fails:
            raise CaptureUnavailable("Microphone busy")
        if self.video_start_fails and any(t.kind == "video" for t in tracks):
            raise CaptureUnavailable("Camera busy")
        handle = SessionHandle(
            session_id=f"s{len(self.started) + 1}",
            started_at=datetime.datetime.now(),
            tracks=list(tracks),
        )
        self.started.append(handle)
        return handle

    def feed(self, handle: SessionHandle, chunk: bytes) -> None:
        self.fed.append(chunk)

    def stop(self, handle: SessionHandle) -> MediaArtifacts:
        self.stopped.append(handle)
        return MediaArtifacts(
            audio_file=Path(f"{handle.session_id}.wav"),
            video_file=Path(f"{handle.session_id}.webm") if handle.has_video else None,
            audio_size=1000,
            video_size=5000 if handle.has_video else 0,
        )


class MemoryRepository:
    """History store keeping records in a list."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []

    def save(self, record):
        if self.fail:
            raise StorageFailure("Disk full")
        self.records.append(record)


# Helper functions for test data creation

def magnitudes_for(loudness: int, size: int = 1024) -> np.ndarray:
    """Magnitude buffer whose loudness estimate is `loudness`."""
    return np.full(size, loudness / LOUDNESS_SCALE)


def create_sine_frame(
    frequency: float = TEST_FREQUENCY,
    amplitude: float = 0.5,
    sample_rate: int = TEST_SAMPLE_RATE,
    size: int = TEST_FRAME_SIZE
) -> np.ndarray:
    """
    Create a float sine frame in [-1, 1].

    Args:
        frequency: Frequency in Hz
        amplitude: Amplitude (0.0 to 1.0)
        sample_rate: Sample rate in Hz
        size: Number of samples

    Returns:
        float64 array of samples
    """
    n = np.arange(size)
    return amplitude * np.sin(2 * np.pi * frequency * n / sample_rate)


def make_summary(
    warning_count: int,
    threshold: float = 80,
    timestamp: Optional[datetime.datetime] = None,
    classroom_id: Optional[str] = None,
    duration_sec: float = 60.0,
    noise_types: Optional[list] = None,
) -> HistoricalRecordingSummary:
    """Create a recording summary for analytics tests."""
    return HistoricalRecordingSummary(
        timestamp=timestamp or datetime.datetime(2025, 3, 3, 9, 0, 0),
        threshold=threshold,
        warning_count=warning_count,
        classroom_id=classroom_id,
        duration_sec=duration_sec,
        noise_types=noise_types or [],
    )
