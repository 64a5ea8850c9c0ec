"""
Scene parameter modulation.

Maps the current BandSample to layer-level transforms (uniform scale,
incremental rotation, ring orbits), layer opacity, the core tint and the
bloom parameters consumed by the renderer. The only state kept between
ticks is the accumulated rotation of each layer.
"""

import math
from dataclasses import dataclass

import numpy as np

from arcsphere.core.bands import BandSample
from arcsphere.scene.layers import LayerKind, ParticleLayer

# Band weights are (bass, mid, treble)
SCALE_WEIGHTS: dict[LayerKind, tuple[float, float, float]] = {
    LayerKind.CORE: (0.5, 0.0, 0.2),
    LayerKind.INNER: (0.35, 0.05, 0.0),
    LayerKind.MIDDLE: (0.1, 0.25, 0.05),
    LayerKind.RING: (0.0, 0.15, 0.1),
}

# Per-tick angular rate: base (pitch, yaw, roll) + weights @ bands
ROTATION_BASE: dict[LayerKind, tuple[float, float, float]] = {
    LayerKind.CORE: (0.0, 0.004, 0.0),
    LayerKind.INNER: (0.001, 0.002, 0.0),
    LayerKind.MIDDLE: (0.0, -0.0015, 0.0008),
    LayerKind.RING: (0.0, 0.0, 0.005),
}
ROTATION_WEIGHTS: dict[LayerKind, tuple[tuple[float, float, float], ...]] = {
    LayerKind.CORE: ((0.0, 0.0, 0.0), (0.02, 0.0, 0.0), (0.0, 0.0, 0.0)),
    LayerKind.INNER: ((0.0, 0.0, 0.005), (0.0, 0.01, 0.0), (0.0, 0.0, 0.0)),
    LayerKind.MIDDLE: ((0.0, 0.0, 0.0), (0.0, 0.0, -0.01), (0.004, 0.0, 0.0)),
    LayerKind.RING: ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 0.01, 0.0)),
}

OPACITY_BASE: dict[LayerKind, float] = {
    LayerKind.CORE: 0.95,
    LayerKind.INNER: 0.9,
    LayerKind.MIDDLE: 0.8,
    LayerKind.RING: 0.8,
}

# (angular speed, orbit fraction, plane, vertical bob)
RING_ORBITS = [
    (0.5, 0.5, "xz", True),
    (0.7, 0.6, "xy", False),
    (0.9, 0.7, "yz", False),
]
ORBIT_RADIUS = 0.6

BLOOM_THRESHOLD = 0.3


@dataclass(frozen=True)
class BloomParams:
    """Bloom pass settings for the renderer."""

    strength: float = 1.2
    radius: float = 0.6
    threshold: float = BLOOM_THRESHOLD


@dataclass(frozen=True)
class SceneParams:
    """Scene-wide outputs of one modulation step."""

    core_color: tuple[float, float, float]
    bloom: BloomParams


def _band_vector(bands: BandSample) -> np.ndarray:
    return np.array([bands.bass, bands.mid, bands.treble])


class SceneModulator:
    """Turns band energies into transforms, tints and bloom."""

    def __init__(self):
        self.angles: dict[str, np.ndarray] = {}

    @staticmethod
    def layer_scale(kind: LayerKind, bands: BandSample) -> float:
        return 1.0 + float(np.dot(SCALE_WEIGHTS[kind], _band_vector(bands)))

    @staticmethod
    def rotation_rate(kind: LayerKind, bands: BandSample) -> np.ndarray:
        base = np.asarray(ROTATION_BASE[kind])
        weights = np.asarray(ROTATION_WEIGHTS[kind])
        return base + weights @ _band_vector(bands)

    @staticmethod
    def layer_opacity(kind: LayerKind, bands: BandSample) -> float:
        return min(1.0, OPACITY_BASE[kind] + bands.treble * 0.1)

    @staticmethod
    def core_color(bands: BandSample) -> tuple[float, float, float]:
        r = 0.35 + bands.bass * 0.65
        g = 0.15 + bands.mid * 0.55
        b = 0.5 + bands.treble * 0.5
        return (min(r, 1.0), min(g, 1.0), min(b, 1.0))

    @staticmethod
    def bloom(bands: BandSample) -> BloomParams:
        return BloomParams(
            strength=1.2 + bands.bass * 1.0 + bands.treble * 0.6,
            radius=0.6 + bands.mid * 0.3,
        )

    @staticmethod
    def ring_position(ring_index: int, t: float) -> np.ndarray:
        """Orbit position of the n-th ring around the origin."""
        speed, fraction, plane, bob = RING_ORBITS[ring_index % len(RING_ORBITS)]
        # Extra rings reuse the orbits with a phase offset
        offset = (ring_index // len(RING_ORBITS)) * math.pi / 3
        r = ORBIT_RADIUS * fraction
        a = math.cos(t * speed + offset) * r
        b = math.sin(t * speed + offset) * r

        pos = np.zeros(3)
        if plane == "xz":
            pos[0], pos[2] = a, b
        elif plane == "xy":
            pos[0], pos[1] = a, b
        else:
            pos[1], pos[2] = a, b
        if bob:
            pos[1] = math.sin(t * 1.5) * 0.1
        return pos

    def reset(self):
        self.angles.clear()

    def apply(self, layers: list[ParticleLayer], bands: BandSample, t: float) -> SceneParams:
        """
        Advance rotations and write every layer's transform and opacity.

        Args:
            layers: Scene layers in draw order.
            bands: Current band sample.
            t: Elapsed time in seconds.

        Returns:
            Scene-wide core color and bloom parameters.
        """
        ring_index = 0
        for layer in layers:
            angles = self.angles.setdefault(layer.name, np.zeros(3))
            angles += self.rotation_rate(layer.kind, bands)

            xf = layer.transform
            xf.scale = self.layer_scale(layer.kind, bands)
            layer.opacity = self.layer_opacity(layer.kind, bands)

            if layer.kind is LayerKind.RING:
                xf.position[:] = self.ring_position(ring_index, t)
                # Rings always face the core; only the spin accumulates.
                xf.rotation[2] = angles[2]
                xf.look_at_origin()
                ring_index += 1
            else:
                xf.rotation[:] = angles

        return SceneParams(core_color=self.core_color(bands), bloom=self.bloom(bands))
