"""
Audio input and loudness estimation.

Single Responsibility: Turn captured audio into per-tick frames and a
relative 0-100 loudness figure.

The loudness figure is not a calibrated sound pressure level. It is the mean
of the byte frequency-magnitude buffer scaled by 0.392 (about 100/255).
"""
import math
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from logger import get_logger
from .errors import CaptureUnavailable, InvalidFrame

log = get_logger(__name__)

LOUDNESS_SCALE = 0.392
INT16_FULL_SCALE = 32768.0
BYTES_PER_SAMPLE = 2

ArrayLike = Union[np.ndarray, Sequence[float], bytes]


@dataclass
class Frame:
    """Time-domain sample buffer for one tick."""
    samples: np.ndarray  # float samples in [-1.0, 1.0]
    sample_rate: int

    @classmethod
    def from_bytes(cls, raw: bytes, sample_rate: int) -> "Frame":
        """Decode little-endian int16 PCM into a normalized frame."""
        samples = np.frombuffer(raw, dtype="<i2").astype(np.float32) / INT16_FULL_SCALE
        return cls(samples=samples, sample_rate=sample_rate)

    def __len__(self) -> int:
        return len(self.samples)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def estimate_loudness(magnitudes: ArrayLike) -> int:
    """
    Estimate loudness from a byte frequency-magnitude buffer.

    Args:
        magnitudes: N values on a 0-255 scale

    Returns:
        Integer loudness in [0, 100]

    Raises:
        InvalidFrame: If the buffer is empty or not finite
    """
    if isinstance(magnitudes, (bytes, bytearray)):
        values = np.frombuffer(bytes(magnitudes), dtype=np.uint8).astype(np.float64)
    else:
        values = np.asarray(magnitudes, dtype=np.float64).ravel()

    if values.size == 0:
        raise InvalidFrame("Empty magnitude buffer")

    mean = float(np.mean(values))
    if not math.isfinite(mean):
        raise InvalidFrame("Magnitude buffer contains non-finite values")

    return round_half_up(mean * LOUDNESS_SCALE)


def display_level(loudness: int, threshold: float, warning_band: float = 10) -> str:
    """Map loudness onto the normal / warning / danger display bands."""
    if loudness >= threshold:
        return "danger"
    if loudness >= threshold - warning_band:
        return "warning"
    return "normal"


def blackman_window(size: int) -> np.ndarray:
    """Blackman window with alpha 0.16, as used by analyser nodes."""
    alpha = 0.16
    a0 = 0.5 * (1 - alpha)
    a1 = 0.5
    a2 = 0.5 * alpha
    n = np.arange(size)
    return a0 - a1 * np.cos(2 * np.pi * n / size) + a2 * np.cos(4 * np.pi * n / size)


def byte_frequency_data(
    samples: np.ndarray,
    previous: Optional[np.ndarray] = None,
    smoothing: float = 0.8,
    min_decibels: float = -100.0,
    max_decibels: float = -30.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute a byte frequency-magnitude buffer from time-domain samples.

    The window is Blackman, magnitudes are scaled by 1/fft_size and smoothed
    over time with `smoothing`, then the [min_decibels, max_decibels] range is
    mapped linearly onto 0..255.

    Args:
        samples: fft_size float samples
        previous: Smoothed magnitudes of the previous call (or None)
        smoothing: Time constant in [0, 1]
        min_decibels: dB value mapped to 0
        max_decibels: dB value mapped to 255

    Returns:
        Tuple of (uint8 buffer of fft_size/2 bins, smoothed magnitudes)
    """
    fft_size = len(samples)
    windowed = samples * blackman_window(fft_size)
    magnitude = np.abs(np.fft.rfft(windowed))[: fft_size // 2] / fft_size

    if previous is not None and previous.shape == magnitude.shape:
        magnitude = smoothing * previous + (1.0 - smoothing) * magnitude

    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(magnitude)
    scaled = (db - min_decibels) * (255.0 / (max_decibels - min_decibels))
    scaled = np.nan_to_num(scaled, nan=0.0, neginf=0.0, posinf=255.0)
    data = np.clip(np.floor(scaled), 0, 255).astype(np.uint8)
    return data, magnitude


class AudioSource(ABC):
    """
    Device boundary delivering one magnitude frame and one time-domain frame per tick.

    Interface Segregation: the monitoring session only needs these calls.
    """

    sample_rate: int

    @abstractmethod
    def start(self) -> None:
        """Open the device; raises CaptureUnavailable on device/permission errors."""

    @abstractmethod
    def stop(self) -> None:
        """Release the device. Safe to call more than once."""

    @abstractmethod
    def read_chunk(self) -> Optional[bytes]:
        """Advance capture by one chunk; returns raw PCM or None if the stream ended."""

    @abstractmethod
    def next_magnitude_frame(self) -> np.ndarray:
        """Byte frequency-magnitude buffer for the current tick."""

    @abstractmethod
    def next_time_domain_frame(self) -> Frame:
        """Time-domain frame for the current tick."""

    def is_running(self) -> bool:
        return True

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


class ArecordAudioSource(AudioSource):
    """
    Captures audio from ALSA arecord and analyses it like an analyser node.

    Each read advances the capture by a hop of fft_size/4 samples and keeps a
    rolling window of fft_size samples for the magnitude and time-domain frames.
    """

    def __init__(self, config: dict):
        """
        Initialize audio capture.

        Args:
            config: Configuration dictionary with audio settings
        """
        self.audio_config = config["audio"]
        self.sample_rate = self.audio_config["sample_rate"]
        self.channels = self.audio_config["channels"]
        self.fft_size = self.audio_config["fft_size"]
        self.hop_samples = self.fft_size // 4
        self.chunk_bytes = self.hop_samples * BYTES_PER_SAMPLE * self.channels

        self._process: Optional[subprocess.Popen] = None
        self._window = np.zeros(self.fft_size, dtype=np.float32)
        self._smoothed: Optional[np.ndarray] = None

    def start(self) -> None:
        """Start the arecord process."""
        if self._process is not None:
            raise RuntimeError("Audio capture already started")

        device = self.audio_config["device"]
        if not device or not isinstance(device, str):
            raise CaptureUnavailable(
                f"Invalid audio device configuration: {device}. "
                f"Expected string like 'plughw:CARD=Device,DEV=0'"
            )

        cmd = [
            "arecord",
            "-D", device,
            "-f", self.audio_config["sample_format"],
            "-r", str(self.sample_rate),
            "-c", str(self.channels),
            "-q",
            "-t", "raw"
        ]

        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE
            )
        except FileNotFoundError:
            raise CaptureUnavailable(
                "arecord command not found. Install alsa-utils: "
                "sudo apt-get install alsa-utils"
            )
        except OSError as e:
            raise CaptureUnavailable(
                f"Failed to start arecord process. Command: {' '.join(cmd)}. Error: {e}"
            )

        # Give process a moment to initialize
        time.sleep(0.1)

        if self._process.poll() is not None:
            stderr_msg = ""
            if self._process.stderr:
                stderr_msg = self._process.stderr.read().decode(errors="ignore").strip()
            self._process = None

            error_hints = {
                "Device or resource busy": "Audio device is in use by another process",
                "No such file or directory": f"Audio device '{device}' not found. Check with 'arecord -l'",
                "Permission denied": "No permission to access audio device. Add user to audio group: 'sudo usermod -a -G audio $USER'",
                "Invalid argument": f"Invalid audio device or format. Device: {device}, Format: {self.audio_config['sample_format']}"
            }

            hint = ""
            for key, msg in error_hints.items():
                if key in stderr_msg:
                    hint = f" Hint: {msg}"
                    break

            raise CaptureUnavailable(
                f"arecord failed to start. Device: {device}. Error: {stderr_msg}.{hint}"
            )

        log.info(f"Audio capture started on {device} ({self.sample_rate} Hz, fft_size={self.fft_size})")

    def read_chunk(self) -> Optional[bytes]:
        """
        Read the next hop of audio and update the analysis window.

        Returns:
            Raw PCM bytes (first channel only) or None if the stream ended
        """
        if self._process is None:
            raise RuntimeError("Audio capture not started")

        if self._process.stdout is None:
            return None

        data = self._process.stdout.read(self.chunk_bytes)
        if not data or len(data) < self.chunk_bytes:
            return None

        samples = np.frombuffer(data, dtype="<i2")
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels)[:, 0]
            data = samples.astype("<i2").tobytes()
        float_samples = samples.astype(np.float32) / INT16_FULL_SCALE

        self._window = np.concatenate([self._window[len(float_samples):], float_samples])
        return data

    def next_magnitude_frame(self) -> np.ndarray:
        data, self._smoothed = byte_frequency_data(
            self._window,
            self._smoothed,
            smoothing=self.audio_config["smoothing_time_constant"],
            min_decibels=self.audio_config["min_decibels"],
            max_decibels=self.audio_config["max_decibels"],
        )
        return data

    def next_time_domain_frame(self) -> Frame:
        return Frame(samples=self._window.copy(), sample_rate=self.sample_rate)

    def is_running(self) -> bool:
        """Check if capture process is still running."""
        if self._process is None:
            return False
        return self._process.poll() is None

    def stop(self) -> None:
        """Stop the arecord process."""
        if self._process is None:
            return

        if self._process.poll() is None:
            self._process.terminate()
            time.sleep(0.1)
            if self._process.poll() is None:
                self._process.kill()

        self._process = None
        log.info("Audio capture stopped")
