"""
Media capture for escalated recordings.

Single Responsibility: Own the audio/video tracks of a recording session and
turn them into files when the session stops.
"""
import datetime
import shutil
import subprocess
import time
import uuid
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from logger import get_logger
from .errors import CaptureUnavailable

log = get_logger(__name__)

BYTES_PER_SAMPLE = 2


@dataclass(frozen=True)
class MediaTrack:
    """A capture track: kind is "audio" or "video"."""
    kind: str
    device: str


@dataclass
class SessionHandle:
    """Opaque handle of a running capture."""
    session_id: str
    started_at: datetime.datetime
    tracks: List[MediaTrack]
    state: Dict = field(default_factory=dict)

    @property
    def has_video(self) -> bool:
        return any(t.kind == "video" for t in self.tracks)


@dataclass
class MediaArtifacts:
    """Files produced by a stopped capture."""
    audio_file: Optional[Path] = None
    video_file: Optional[Path] = None
    audio_size: int = 0
    video_size: int = 0


class MediaCapture(ABC):
    """
    Device boundary for recording.

    Audio data is delivered incrementally through `feed()`; the monitoring
    loop already owns the microphone, so the audio track reuses its chunks.
    """

    @abstractmethod
    def acquire_video(self) -> MediaTrack:
        """Acquire the camera; raises CaptureUnavailable if it cannot be used."""

    @abstractmethod
    def start(self, tracks: List[MediaTrack]) -> SessionHandle:
        """Begin capturing the given tracks."""

    @abstractmethod
    def feed(self, handle: SessionHandle, chunk: bytes) -> None:
        """Deliver one chunk of audio data to a running capture."""

    @abstractmethod
    def stop(self, handle: SessionHandle) -> MediaArtifacts:
        """Finalize the capture and return the produced files."""


class LocalMediaCapture(MediaCapture):
    """
    Writes the audio track as WAV and records video with ffmpeg (v4l2).
    """

    def __init__(self, config: dict):
        """
        Initialize media capture.

        Args:
            config: Configuration dictionary
        """
        self.recording_config = config["recording"]
        self.sample_rate = config["audio"]["sample_rate"]
        self.output_dir = Path(self.recording_config["output_dir"])
        self.video_device: Optional[str] = self.recording_config.get("video_device")
        self.video_size: str = self.recording_config.get("video_size", "1280x720")

    def acquire_video(self) -> MediaTrack:
        if not self.video_device:
            raise CaptureUnavailable("No video device configured")
        if not Path(self.video_device).exists():
            raise CaptureUnavailable(f"Video device {self.video_device} not found")
        if shutil.which("ffmpeg") is None:
            raise CaptureUnavailable("ffmpeg command not found. Install ffmpeg: sudo apt-get install ffmpeg")
        return MediaTrack("video", self.video_device)

    def start(self, tracks: List[MediaTrack]) -> SessionHandle:
        started_at = datetime.datetime.now()
        handle = SessionHandle(
            session_id=uuid.uuid4().hex[:12],
            started_at=started_at,
            tracks=list(tracks),
        )
        stem = started_at.strftime("noise-recording_%Y-%m-%d_%H-%M-%S")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureUnavailable(f"Cannot create output directory {self.output_dir}: {e}")

        for track in tracks:
            if track.kind == "audio":
                self._start_audio(handle, self.output_dir / f"{stem}.wav")

        for track in [t for t in tracks if t.kind == "video"]:
            try:
                self._start_video(handle, track, self.output_dir / f"{stem}.webm")
            except CaptureUnavailable as e:
                log.warning(f"Video capture failed, recording audio only: {e}")
                handle.tracks.remove(track)

        if not handle.tracks:
            raise CaptureUnavailable("No track could be started")

        log.info(
            f"Recording started: {', '.join(t.kind for t in handle.tracks)} "
            f"-> {self.output_dir.resolve()}"
        )
        return handle

    def _start_audio(self, handle: SessionHandle, path: Path) -> None:
        try:
            wav = wave.open(str(path), "wb")
            wav.setnchannels(1)
            wav.setsampwidth(BYTES_PER_SAMPLE)
            wav.setframerate(self.sample_rate)
        except OSError as e:
            raise CaptureUnavailable(f"Failed to open audio file {path}: {e}")
        handle.state["audio_writer"] = wav
        handle.state["audio_file"] = path

    def _start_video(self, handle: SessionHandle, track: MediaTrack, path: Path) -> None:
        cmd = [
            "ffmpeg",
            "-y",
            "-loglevel", "error",
            "-f", "v4l2",
            "-video_size", self.video_size,
            "-i", track.device,
            "-c:v", "libvpx",
            "-b:v", "1M",
            str(path),
        ]
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise CaptureUnavailable(f"Failed to start ffmpeg: {e}")

        time.sleep(0.1)
        if process.poll() is not None:
            stderr_msg = process.stderr.read().decode(errors="ignore").strip() if process.stderr else ""
            raise CaptureUnavailable(f"ffmpeg failed to start on {track.device}: {stderr_msg}")

        handle.state["video_process"] = process
        handle.state["video_file"] = path

    def feed(self, handle: SessionHandle, chunk: bytes) -> None:
        wav = handle.state.get("audio_writer")
        if wav is not None and chunk:
            wav.writeframes(chunk)

    def stop(self, handle: SessionHandle) -> MediaArtifacts:
        artifacts = MediaArtifacts()

        wav = handle.state.pop("audio_writer", None)
        if wav is not None:
            wav.close()
            artifacts.audio_file = handle.state.get("audio_file")

        process = handle.state.pop("video_process", None)
        if process is not None:
            if process.poll() is None:
                try:
                    # "q" lets ffmpeg finish the container cleanly
                    process.communicate(b"q", timeout=5)
                except subprocess.TimeoutExpired:
                    process.terminate()
                    try:
                        process.wait(timeout=2)
                    except subprocess.TimeoutExpired:
                        process.kill()
            artifacts.video_file = handle.state.get("video_file")

        if artifacts.audio_file is not None and artifacts.audio_file.exists():
            artifacts.audio_size = artifacts.audio_file.stat().st_size
        if artifacts.video_file is not None and artifacts.video_file.exists():
            artifacts.video_size = artifacts.video_file.stat().st_size

        log.info(
            f"Recording finalized: audio={artifacts.audio_file} ({artifacts.audio_size} bytes), "
            f"video={artifacts.video_file} ({artifacts.video_size} bytes)"
        )
        return artifacts
