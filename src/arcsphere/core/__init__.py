"""Spectrum input and band extraction."""

from arcsphere.core.bands import BandExtractor, BandRanges, BandSample
from arcsphere.core.spectrum import AnalyserSpectrum, SpectrumSource, StaticSpectrum
