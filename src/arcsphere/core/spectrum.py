"""
Spectrum sources.

A spectrum source is a pull-based accessor: the engine hands it a
caller-owned uint8 buffer once per tick and the source fills it with
the latest frequency magnitudes. ``AnalyserSpectrum`` precomputes
analyser-style byte spectra from an audio file so the engine can be
driven offline or alongside a playback clock.
"""

import abc
from pathlib import Path
from typing import Union

import librosa
import numpy as np


class SpectrumSource(abc.ABC):
    """Fills a byte buffer with the newest spectrum sample."""

    bin_count: int = 256

    @abc.abstractmethod
    def fill(self, out: np.ndarray) -> bool:
        """
        Write magnitudes into ``out`` (dtype uint8).

        Returns:
            False when no sample is available (treated as silence).
        """
        pass


class StaticSpectrum(SpectrumSource):
    """Always returns the same sample. Useful for hosts and tests."""

    def __init__(self, values):
        self.values = np.clip(np.asarray(values), 0, 255).astype(np.uint8)
        self.bin_count = len(self.values)

    def update(self, values):
        """Replace the held sample (same length)."""
        self.values[:] = np.clip(np.asarray(values), 0, 255).astype(np.uint8)

    def fill(self, out: np.ndarray) -> bool:
        n = min(len(out), len(self.values))
        out[:n] = self.values[:n]
        out[n:] = 0
        return True


class AnalyserSpectrum(SpectrumSource):
    """
    Byte spectra aligned to a frame clock.

    Mirrors what a browser AnalyserNode reports: Blackman-windowed FFT of
    ``2 * bin_count`` samples, magnitudes smoothed over time, converted to
    decibels and mapped from [min_db, max_db] onto 0..255.
    """

    def __init__(self, frames: np.ndarray, fps: int = 60):
        """
        Args:
            frames: (n_frames, bin_count) uint8 spectra, one per tick.
            fps: Frame rate the spectra were computed at.
        """
        frames = np.asarray(frames)
        if frames.ndim != 2:
            raise ValueError(f"frames must be 2-D, got shape {frames.shape}")
        self.frames = frames.astype(np.uint8)
        self.fps = fps
        self.bin_count = self.frames.shape[1]
        self.time = 0.0

    @property
    def n_frames(self) -> int:
        return self.frames.shape[0]

    @property
    def duration(self) -> float:
        return self.n_frames / float(self.fps)

    def seek(self, seconds: float):
        """Move the read head to a playback position."""
        self.time = float(seconds)

    def fill(self, out: np.ndarray) -> bool:
        index = int(self.time * self.fps)
        if index < 0 or index >= self.n_frames:
            return False
        n = min(len(out), self.bin_count)
        out[:n] = self.frames[index, :n]
        out[n:] = 0
        return True

    @staticmethod
    def compute_frames(
        y: np.ndarray,
        sr: int,
        fps: int = 60,
        bin_count: int = 256,
        smoothing: float = 0.8,
        min_db: float = -100.0,
        max_db: float = -30.0,
    ) -> np.ndarray:
        """
        Convert a mono signal to per-frame byte spectra.

        Args:
            y: Mono audio signal.
            sr: Sample rate.
            fps: Output frames per second.
            bin_count: Number of frequency bins (FFT size is twice this).
            smoothing: Temporal smoothing constant in [0, 1).
            min_db: Level mapped to 0.
            max_db: Level mapped to 255.

        Returns:
            (n_frames, bin_count) uint8 array.
        """
        n_fft = bin_count * 2
        hop_length = max(1, int(sr / fps))

        stft = librosa.stft(
            y,
            n_fft=n_fft,
            hop_length=hop_length,
            window="blackman",
            center=True,
        )
        magnitude = np.abs(stft[:bin_count]).T / n_fft  # (n_frames, bin_count)

        smoothed = np.zeros_like(magnitude)
        current = np.zeros(bin_count, dtype=magnitude.dtype)
        for i, frame in enumerate(magnitude):
            current = smoothing * current + (1.0 - smoothing) * frame
            smoothed[i] = current

        db = 20.0 * np.log10(smoothed + 1e-12)
        scaled = 255.0 * (db - min_db) / (max_db - min_db)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    @classmethod
    def from_signal(
        cls,
        y: np.ndarray,
        sr: int,
        fps: int = 60,
        bin_count: int = 256,
        smoothing: float = 0.8,
    ) -> "AnalyserSpectrum":
        frames = cls.compute_frames(y, sr, fps=fps, bin_count=bin_count, smoothing=smoothing)
        return cls(frames, fps=fps)

    @classmethod
    def from_file(
        cls,
        audio_path: Union[str, Path],
        fps: int = 60,
        bin_count: int = 256,
        sample_rate: int = 44100,
        smoothing: float = 0.8,
    ) -> "AnalyserSpectrum":
        """
        Load an audio file and precompute its spectra.

        Raises:
            FileNotFoundError: If the audio file does not exist.
        """
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        y, sr = librosa.load(audio_path, sr=sample_rate, mono=True)
        return cls.from_signal(y, sr, fps=fps, bin_count=bin_count, smoothing=smoothing)
