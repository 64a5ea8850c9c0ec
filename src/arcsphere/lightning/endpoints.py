"""
Bolt endpoint resolution.

Turns a bolt's particle track into world-space geometry: start and end
points, the segment midpoint, its unit direction and its length. Arcs
that leave the core start on the core's current surface, pointing at
their end particle, instead of at the core's center.
"""

from typing import Mapping

import numpy as np

from arcsphere.lightning.pool import Bolt
from arcsphere.scene.layers import LayerKind, ParticleLayer

HIGHLIGHT_COLOR = (1.0, 1.0, 1.0)


def core_surface_point(
    center: np.ndarray,
    toward: np.ndarray,
    surface_radius: float,
    out: np.ndarray,
) -> np.ndarray:
    """Point on a sphere around ``center`` in the direction of ``toward``."""
    np.subtract(toward, center, out=out)
    dist = float(np.linalg.norm(out))
    if dist < 1e-12:
        out[:] = center
        return out
    out *= surface_radius / dist
    out += center
    return out


def resolve_endpoints(
    bolt: Bolt,
    layers: Mapping[LayerKind, ParticleLayer],
    core_radius: float,
    highlight=HIGHLIGHT_COLOR,
) -> None:
    """
    Fill the bolt's geometry buffers from its track.

    The end particle's live color is overwritten with ``highlight``;
    colors are reset from base at the start of the next tick.

    Args:
        bolt: An active bolt (``bolt.track`` set).
        layers: Layers by kind; must contain the track's layers, except
            the core, whose absence means an unscaled core at the origin.
        core_radius: Core radius before layer scaling.
        highlight: RGB written to the end particle.
    """
    track = bolt.track
    end_layer = layers[track.end_layer]
    end_layer.world_position(track.end_index, out=bolt.end)

    if track.start_layer is LayerKind.CORE:
        core = layers.get(LayerKind.CORE)
        if core is not None:
            center = core.transform.position
            surface = core_radius * core.transform.scale
        else:
            center = np.zeros(3)
            surface = core_radius
        core_surface_point(center, bolt.end, surface, bolt.start)
    else:
        # INNER, MIDDLE and RING all resolve through their own transform
        layers[track.start_layer].world_position(track.start_index, out=bolt.start)

    np.add(bolt.start, bolt.end, out=bolt.midpoint)
    bolt.midpoint *= 0.5
    np.subtract(bolt.end, bolt.start, out=bolt.direction)
    bolt.length = float(np.linalg.norm(bolt.direction))
    if bolt.length > 1e-12:
        bolt.direction /= bolt.length
    else:
        bolt.direction[:] = (0.0, 1.0, 0.0)

    end_layer.highlight(track.end_index, highlight)
