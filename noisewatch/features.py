"""
Acoustic feature extraction for noise classification.

This module derives a fixed feature vector from one time-domain frame:
temporal features (RMS, zero-crossing rate) and spectral features computed
from a DFT over at most 512 samples (centroid, rolloff, Mel band energies,
spectral flux, peak frequency).

Single Responsibility: Audio feature extraction.
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Sequence, Union

import numpy as np

# Samples fed to the DFT are capped for cost control
MAX_DFT_SAMPLES = 512
N_MEL_BANDS = 5
ROLLOFF_FRACTION = 0.85


@dataclass
class FeatureVector:
    """Features of one frame; all values are plain floats."""
    rms: float
    zero_crossing_rate: float
    spectral_centroid: float
    spectral_rolloff: float
    mel_band_energies: List[float] = field(default_factory=lambda: [0.0] * N_MEL_BANDS)
    spectral_flux: float = 0.0
    peak_frequency: float = 0.0

    @classmethod
    def zeros(cls) -> "FeatureVector":
        return cls(
            rms=0.0,
            zero_crossing_rate=0.0,
            spectral_centroid=0.0,
            spectral_rolloff=0.0,
            mel_band_energies=[0.0] * N_MEL_BANDS,
            spectral_flux=0.0,
            peak_frequency=0.0,
        )

    def to_dict(self) -> Dict:
        return asdict(self)


def hz_to_mel(hz):
    """Mel scale: m = 2595 * log10(1 + f/700)."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz, dtype=np.float64) / 700.0)


def compute_rms(samples: np.ndarray) -> float:
    return float(np.sqrt(np.mean(samples ** 2)))


def compute_zero_crossing_rate(samples: np.ndarray) -> float:
    """
    Sign changes between consecutive samples divided by the frame length.

    A sample is "positive" when >= 0, so 0 -> -x counts as a crossing.
    """
    non_negative = samples >= 0
    crossings = int(np.count_nonzero(non_negative[1:] != non_negative[:-1]))
    return crossings / len(samples)


def direct_dft_magnitudes(samples: np.ndarray) -> np.ndarray:
    """
    Magnitude spectrum by direct O(N^2) summation.

    Reference implementation; `magnitude_spectrum` gives the same numbers via FFT.
    """
    x = np.asarray(samples, dtype=np.float64)[:MAX_DFT_SAMPLES]
    n = len(x)
    k = np.arange((n + 1) // 2)
    angle = -2.0 * np.pi * np.outer(k, np.arange(n)) / n
    real = np.dot(np.cos(angle), x)
    imag = np.dot(np.sin(angle), x)
    return np.sqrt(real ** 2 + imag ** 2)


def magnitude_spectrum(samples: np.ndarray, sample_rate: int):
    """
    Compute bin magnitudes and bin frequencies.

    The DFT runs over the first min(N, 512) samples; bins 0 .. ceil(n/2)-1 are
    kept, and bin k sits at k * sample_rate / n Hz.

    Returns:
        Tuple of (magnitudes, frequencies)
    """
    x = np.asarray(samples, dtype=np.float64)[:MAX_DFT_SAMPLES]
    n = len(x)
    n_bins = (n + 1) // 2
    magnitudes = np.abs(np.fft.fft(x))[:n_bins]
    frequencies = np.arange(n_bins) * sample_rate / n
    return magnitudes, frequencies


def compute_spectral_centroid(magnitudes: np.ndarray, frequencies: np.ndarray) -> float:
    total = float(np.sum(magnitudes))
    if total <= 0:
        return 0.0
    return float(np.sum(frequencies * magnitudes) / total)


def compute_spectral_rolloff(magnitudes: np.ndarray, frequencies: np.ndarray, sample_rate: int) -> float:
    """Smallest bin frequency where cumulative magnitude reaches 85% of the total."""
    total = float(np.sum(magnitudes))
    if total <= 0:
        return sample_rate / 2.0

    cumulative = np.cumsum(magnitudes)
    reached = np.nonzero(cumulative >= ROLLOFF_FRACTION * total)[0]
    if len(reached) == 0:
        return sample_rate / 2.0
    return float(frequencies[reached[0]])


def compute_mel_band_energies(
    magnitudes: np.ndarray,
    frequencies: np.ndarray,
    sample_rate: int,
    n_bands: int = N_MEL_BANDS
) -> List[float]:
    """
    Sum magnitudes over equal-width Mel bands between 0 Hz and Nyquist.

    Bands are half-open [lo, hi) except the last, which includes Nyquist.
    Each sum is compressed with log(1 + energy).
    """
    edges = np.linspace(0.0, float(hz_to_mel(sample_rate / 2.0)), n_bands + 1)
    bin_mels = hz_to_mel(frequencies)

    energies = []
    for i in range(n_bands):
        lo, hi = edges[i], edges[i + 1]
        if i == n_bands - 1:
            mask = (bin_mels >= lo) & (bin_mels <= hi)
        else:
            mask = (bin_mels >= lo) & (bin_mels < hi)
        energies.append(float(np.log1p(np.sum(magnitudes[mask]))))
    return energies


def compute_spectral_flux(magnitudes: np.ndarray) -> float:
    """
    Sum of positive bin-to-bin magnitude increases within one frame.

    The previous-magnitude baseline starts at 0 on every call, so this is the
    cumulative positive change across frequency, not change across frames.
    """
    diffs = np.diff(np.concatenate([[0.0], magnitudes]))
    return float(np.sum(diffs[diffs > 0]))


def compute_peak_frequency(magnitudes: np.ndarray, frequencies: np.ndarray) -> float:
    """Frequency of the first bin with the largest magnitude (0 Hz if all are zero)."""
    if len(magnitudes) == 0 or float(np.max(magnitudes)) <= 0:
        return 0.0
    return float(frequencies[int(np.argmax(magnitudes))])


def extract_features(samples: Union[np.ndarray, Sequence[float]], sample_rate: int) -> FeatureVector:
    """
    Extract the feature vector of one time-domain frame.

    Args:
        samples: Samples normalized to [-1, 1]
        sample_rate: Sample rate in Hz

    Returns:
        FeatureVector; all zeros for an empty or non-finite frame
    """
    x = np.asarray(samples, dtype=np.float64).ravel()
    if x.size == 0 or sample_rate <= 0 or not np.all(np.isfinite(x)):
        return FeatureVector.zeros()

    magnitudes, frequencies = magnitude_spectrum(x, sample_rate)

    return FeatureVector(
        rms=compute_rms(x),
        zero_crossing_rate=compute_zero_crossing_rate(x),
        spectral_centroid=compute_spectral_centroid(magnitudes, frequencies),
        spectral_rolloff=compute_spectral_rolloff(magnitudes, frequencies, sample_rate),
        mel_band_energies=compute_mel_band_energies(magnitudes, frequencies, sample_rate),
        spectral_flux=compute_spectral_flux(magnitudes),
        peak_frequency=compute_peak_frequency(magnitudes, frequencies),
    )
