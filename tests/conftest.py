"""Pytest configuration and shared fixtures."""

import dataclasses

import numpy as np
import pytest

from arcsphere.core.bands import BandSample
from arcsphere.core.spectrum import StaticSpectrum
from arcsphere.engine import EngineConfig
from arcsphere.lightning.automaton import LightningConfig
from arcsphere.scene.layers import LayerKind, ParticleLayer, default_layer_specs

# Default sample rate for test audio
TEST_SR = 22050
BIN_COUNT = 256


@pytest.fixture
def loud() -> BandSample:
    """mid + 1.5 * treble = 1.7, well above the activation threshold."""
    return BandSample(bass=0.5, mid=0.8, treble=0.6)


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def saturated_bins() -> np.ndarray:
    """Analyser output clipped at full scale in every bin."""
    return np.full(BIN_COUNT, 255, dtype=np.uint8)


@pytest.fixture
def bass_only_bins() -> np.ndarray:
    """Strong low bins, nothing above."""
    bins = np.zeros(BIN_COUNT, dtype=np.uint8)
    bins[0:10] = 200
    return bins


@pytest.fixture
def vocal_bins() -> np.ndarray:
    """Loud mid and treble ranges, as with a singer over a quiet bed."""
    bins = np.zeros(BIN_COUNT, dtype=np.uint8)
    bins[0:10] = 120
    bins[10:80] = 210
    bins[80:200] = 150
    return bins


@pytest.fixture
def vocal_source(vocal_bins) -> StaticSpectrum:
    return StaticSpectrum(vocal_bins)


def small_specs():
    """Stock layer specs with particle counts cut down for speed."""
    counts = {LayerKind.CORE: 40, LayerKind.INNER: 120, LayerKind.MIDDLE: 160}
    return [dataclasses.replace(s, count=counts[s.kind]) for s in default_layer_specs()]


@pytest.fixture
def small_layer_specs():
    return small_specs()


@pytest.fixture
def small_config() -> EngineConfig:
    return EngineConfig(
        layers=small_specs(),
        ring_particles=60,
        lightning=LightningConfig(pool_size=12, seed_probability=0.5),
    )


@pytest.fixture
def target_layers() -> dict[LayerKind, ParticleLayer]:
    """Core, inner and middle layers keyed by kind."""
    rng = np.random.default_rng(7)
    return {spec.kind: ParticleLayer.generate(spec, rng) for spec in small_specs()}


@pytest.fixture
def pure_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate a pure 440Hz sine wave (A4 note).

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def temp_audio_file(tmp_path, pure_sine):
    """Write the sine fixture to a temporary WAV file."""
    import soundfile as sf

    y, sr = pure_sine
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
