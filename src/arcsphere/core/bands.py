"""
Band extraction module.

Reduces an analyser-style byte spectrum (one unsigned magnitude per
frequency bin) into the three control signals that drive the scene:
bass, mid and treble.
"""

from dataclasses import dataclass, field

import numpy as np

from arcsphere.core.spectrum import SpectrumSource


@dataclass(frozen=True)
class BandSample:
    """Normalized band energies for one tick, each in [0.0, 1.0]."""

    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0

    def vocal_intensity(self, treble_weight: float) -> float:
        """Foreground "speech" energy. Bass is left out on purpose."""
        return self.mid + self.treble * treble_weight

    def as_dict(self) -> dict[str, float]:
        return {"bass": self.bass, "mid": self.mid, "treble": self.treble}


SILENCE = BandSample()


@dataclass(frozen=True)
class BandRanges:
    """Half-open bin index ranges [start, stop) for each band."""

    bass: tuple[int, int] = (0, 10)
    mid: tuple[int, int] = (10, 80)
    treble: tuple[int, int] = (80, 200)

    def validate(self, bin_count: int) -> None:
        """
        Check the ranges against a spectrum length.

        Raises:
            ValueError: If a range is empty, out of bounds, or overlaps
                the next one.
        """
        ordered = [("bass", self.bass), ("mid", self.mid), ("treble", self.treble)]
        prev_stop = 0
        for name, (start, stop) in ordered:
            if start < 0 or stop > bin_count:
                raise ValueError(
                    f"{name} range [{start}, {stop}) outside 0..{bin_count}"
                )
            if stop <= start:
                raise ValueError(f"{name} range [{start}, {stop}) is empty")
            if start < prev_stop:
                raise ValueError(f"{name} range [{start}, {stop}) overlaps previous band")
            prev_stop = stop


@dataclass
class BandExtractor:
    """
    Pulls the latest spectrum into a reusable buffer and averages bands.

    The same buffer is used every tick, so all three bands always come
    from one consistent snapshot.
    """

    bin_count: int = 256
    ranges: BandRanges = field(default_factory=BandRanges)

    def __post_init__(self):
        if self.bin_count <= 0:
            raise ValueError(f"bin_count must be positive, got {self.bin_count}")
        self.ranges.validate(self.bin_count)
        self.buffer = np.zeros(self.bin_count, dtype=np.uint8)

    def _band_mean(self, bounds: tuple[int, int]) -> float:
        start, stop = bounds
        # Sum in a wide dtype, uint8 would wrap.
        total = int(self.buffer[start:stop].sum(dtype=np.int64))
        value = total / ((stop - start) * 255.0)
        return float(min(max(value, 0.0), 1.0))

    def extract(self, source: SpectrumSource | None) -> BandSample:
        """
        Read the source and compute the band sample.

        Args:
            source: Spectrum accessor, or None when no audio is attached.

        Returns:
            BandSample; all zeros when there is no source or no data.
        """
        if source is None:
            self.buffer.fill(0)
            return SILENCE

        if not source.fill(self.buffer):
            self.buffer.fill(0)
            return SILENCE

        return BandSample(
            bass=self._band_mean(self.ranges.bass),
            mid=self._band_mean(self.ranges.mid),
            treble=self._band_mean(self.ranges.treble),
        )
