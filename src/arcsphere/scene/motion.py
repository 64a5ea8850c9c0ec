"""
Organic motion field.

Each particle wobbles around its anchor on three out-of-phase sinusoids.
The periodic part depends only on (anchor, phase, t, intensity), so the
motion is stateless and can resume at any time. A small random jitter is
added on top only when the jitter signal is above a threshold.
"""

import numpy as np

from arcsphere.core.bands import BandSample
from arcsphere.scene.layers import LayerSpec, ParticleLayer

JITTER_THRESHOLD = 0.05


def amplitude(intensity: float, base: float = 0.01, gain: float = 0.06) -> float:
    """Displacement amplitude; never drops below ``base``."""
    return base + gain * max(intensity, 0.0)


def periodic_displacement(
    anchor: np.ndarray,
    phase: np.ndarray,
    t: float,
    intensity: float,
    speed: float = 1.0,
    wave_k: float = 3.0,
    amp_base: float = 0.01,
    amp_gain: float = 0.06,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """
    Deterministic part of the displacement for every particle.

    Args:
        anchor: (N, 3) rest positions.
        phase: (N,) per-particle offsets.
        t: Elapsed time in seconds.
        intensity: Driving band value.
        speed: Time multiplier for the layer.
        wave_k: Spatial frequency of the anchor term.
        out: Optional (N, 3) buffer to write into.

    Returns:
        (N, 3) displacement.
    """
    if out is None:
        out = np.empty_like(anchor)
    amp = amplitude(intensity, amp_base, amp_gain)
    ts = t * speed

    np.sin(ts + anchor[:, 1] * wave_k + phase, out=out[:, 0])
    np.cos(ts * 0.8 + anchor[:, 2] * wave_k + phase, out=out[:, 1])
    np.sin(ts * 1.2 + anchor[:, 0] * wave_k + phase, out=out[:, 2])
    out *= amp
    return out


def jitter_term(
    count: int,
    jitter: float,
    rng: np.random.Generator,
    scale: float = 0.01,
    threshold: float = JITTER_THRESHOLD,
) -> np.ndarray | None:
    """Uniform noise scaled by ``jitter``, or None when at rest."""
    if jitter <= threshold:
        return None
    return rng.uniform(-1.0, 1.0, size=(count, 3)) * (jitter * scale)


def band_value(bands: BandSample, name: str | None) -> float:
    if name is None:
        return 0.0
    return float(getattr(bands, name))


def drive_layer(
    layer: ParticleLayer,
    spec: LayerSpec,
    t: float,
    bands: BandSample,
    rng: np.random.Generator,
):
    """Rewrite ``layer.live_position`` for this tick."""
    disp = periodic_displacement(
        layer.anchor,
        layer.phase,
        t,
        band_value(bands, spec.drive),
        speed=spec.speed,
        wave_k=spec.wave_k,
        amp_base=spec.amp_base,
        amp_gain=spec.amp_gain,
        out=layer.live_position,
    )
    noise = jitter_term(
        layer.count,
        band_value(bands, spec.jitter_band),
        rng,
        scale=spec.jitter_scale,
    )
    if noise is not None:
        disp += noise
    disp += layer.anchor
