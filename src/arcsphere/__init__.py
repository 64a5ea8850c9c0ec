"""Audio-reactive particle shells with chaining lightning arcs."""

from arcsphere.core.bands import BandExtractor, BandRanges, BandSample
from arcsphere.core.spectrum import AnalyserSpectrum, SpectrumSource, StaticSpectrum
from arcsphere.engine import ArcSphereEngine, EngineConfig, FrameOutput
from arcsphere.lightning.automaton import LightningAutomaton, LightningConfig
from arcsphere.scene.layers import LayerKind, LayerSpec, ParticleLayer

__version__ = "0.1.0"
__all__ = [
    "AnalyserSpectrum",
    "ArcSphereEngine",
    "BandExtractor",
    "BandRanges",
    "BandSample",
    "EngineConfig",
    "FrameOutput",
    "LayerKind",
    "LayerSpec",
    "LightningAutomaton",
    "LightningConfig",
    "ParticleLayer",
    "SpectrumSource",
    "StaticSpectrum",
]
