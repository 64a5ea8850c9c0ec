"""
Particle layers.

A layer is one shell of the point cloud: fixed anchor positions and
phases generated once at scene setup, per-particle base colors, and the
live buffers (positions, colors) that are rewritten every tick. Each
layer carries a rigid transform (position, rotation, uniform scale) that
the renderer applies on top of the per-particle displacement.
"""

import enum
import math
from dataclasses import dataclass, field

import numpy as np


class LayerKind(str, enum.Enum):
    """Closed set of layer tags."""

    CORE = "core"
    INNER = "inner"
    MIDDLE = "middle"
    RING = "ring"


def rotation_matrix(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """3×3 rotation: roll (around Z), then pitch (around X), then yaw (around Y)."""
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)
    cr, sr = math.cos(roll), math.sin(roll)
    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cp, -sp], [0.0, sp, cp]])
    Ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    Rz = np.array([[cr, -sr, 0.0], [sr, cr, 0.0], [0.0, 0.0, 1.0]])
    return Ry @ Rx @ Rz


@dataclass
class Transform:
    """Layer-level rigid transform with uniform scale."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))  # pitch, yaw, roll
    scale: float = 1.0

    def matrix(self) -> np.ndarray:
        """Linear part (rotation times scale)."""
        return rotation_matrix(*self.rotation) * self.scale

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform an (N, 3) array into world space."""
        return points @ self.matrix().T + self.position

    def apply_point(self, point: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
        """Transform a single point, optionally into a reused buffer."""
        if out is None:
            out = np.empty(3)
        np.dot(self.matrix(), point, out=out)
        out += self.position
        return out

    def look_at_origin(self):
        """Point the local +Z axis from ``position`` toward the origin, keeping roll."""
        norm = float(np.linalg.norm(self.position))
        if norm < 1e-9:
            return
        d = -self.position / norm
        self.rotation[0] = -math.asin(max(-1.0, min(1.0, d[1])))
        self.rotation[1] = math.atan2(d[0], d[2])


@dataclass
class LayerSpec:
    """Generation and motion parameters for one layer."""

    kind: LayerKind
    count: int
    radius: float
    distribution: str = "shell"  # "shell", "volume", "ring"
    thickness: float = 0.02
    color_min: tuple[float, float, float] = (0.0, 0.6, 0.0)
    color_max: tuple[float, float, float] = (0.1, 0.8, 0.1)

    # Motion field
    drive: str = "bass"  # band feeding the amplitude
    speed: float = 1.0
    wave_k: float = 3.0
    amp_base: float = 0.01
    amp_gain: float = 0.06
    jitter_band: str | None = None
    jitter_scale: float = 0.01


def default_layer_specs() -> list[LayerSpec]:
    """Core, inner shell and middle shell with their stock tuning."""
    return [
        LayerSpec(
            kind=LayerKind.CORE,
            count=600,
            radius=0.25,
            distribution="volume",
            color_min=(0.9, 0.5, 0.2),
            color_max=(1.0, 0.7, 0.35),
            drive="treble",
            speed=1.6,
            wave_k=6.0,
            amp_base=0.004,
            amp_gain=0.03,
            jitter_band="treble",
            jitter_scale=0.01,
        ),
        LayerSpec(
            kind=LayerKind.INNER,
            count=2000,
            radius=0.6,
            distribution="shell",
            thickness=0.02,
            color_min=(0.0, 0.6, 0.0),
            color_max=(0.1, 0.8, 0.1),
            drive="bass",
            speed=1.0,
            wave_k=3.0,
            amp_base=0.01,
            amp_gain=0.08,
            jitter_band="mid",
            jitter_scale=0.01,
        ),
        LayerSpec(
            kind=LayerKind.MIDDLE,
            count=3000,
            radius=1.0,
            distribution="shell",
            thickness=0.12,
            color_min=(0.6, 0.0, 0.9),
            color_max=(0.8, 0.1, 1.0),
            drive="mid",
            speed=0.7,
            wave_k=2.0,
            amp_base=0.015,
            amp_gain=0.1,
            jitter_band="treble",
            jitter_scale=0.015,
        ),
    ]


def ring_layer_spec(count: int = 1000) -> LayerSpec:
    """Thin orbiting ring; up to three share the preset orbits."""
    return LayerSpec(
        kind=LayerKind.RING,
        count=count,
        radius=0.5,
        distribution="ring",
        thickness=0.01,
        color_min=(0.6, 0.0, 0.9),
        color_max=(0.8, 0.1, 1.0),
        drive="mid",
        speed=0.9,
        wave_k=4.0,
        amp_base=0.004,
        amp_gain=0.02,
    )


class ParticleLayer:
    """
    One point-cloud shell.

    ``anchor``, ``phase`` and ``base_color`` are read-only after
    construction. ``live_position`` and ``live_color`` are the per-tick
    buffers handed to the renderer.
    """

    def __init__(
        self,
        kind: LayerKind,
        anchor: np.ndarray,
        phase: np.ndarray,
        base_color: np.ndarray,
        name: str | None = None,
    ):
        # Private copies: these are frozen below
        anchor = np.array(anchor, dtype=np.float64)
        phase = np.array(phase, dtype=np.float64)
        base_color = np.array(base_color, dtype=np.float32)

        count = anchor.shape[0] if anchor.ndim == 2 else 0
        if count <= 0:
            raise ValueError(f"layer {kind.value!r} needs a positive particle count")
        if anchor.shape != (count, 3):
            raise ValueError(f"anchor must be (N, 3), got {anchor.shape}")
        if phase.shape != (count,) or base_color.shape != (count, 3):
            raise ValueError("phase and base_color must match the anchor count")

        self.kind = kind
        self.name = name or kind.value
        self.anchor = anchor
        self.phase = phase
        self.base_color = base_color
        for arr in (self.anchor, self.phase, self.base_color):
            arr.flags.writeable = False

        self.live_position = anchor.copy()
        self.live_color = base_color.copy()
        self.transform = Transform()
        self.opacity = 1.0

    def __len__(self) -> int:
        return self.anchor.shape[0]

    @property
    def count(self) -> int:
        return self.anchor.shape[0]

    def reset_colors(self):
        """Drop last tick's highlights."""
        np.copyto(self.live_color, self.base_color)

    def highlight(self, index: int, color):
        self.live_color[index] = color

    def world_position(self, index: int, out: np.ndarray | None = None) -> np.ndarray:
        return self.transform.apply_point(self.live_position[index], out=out)

    def world_positions(self) -> np.ndarray:
        return self.transform.apply(self.live_position)

    @classmethod
    def generate(
        cls,
        spec: LayerSpec,
        rng: np.random.Generator,
        name: str | None = None,
    ) -> "ParticleLayer":
        """
        Build a layer from its spec with randomized anchors.

        Raises:
            ValueError: If ``spec.count`` is not positive or the
                distribution is unknown.
        """
        n = spec.count
        if n <= 0:
            raise ValueError(f"layer {spec.kind.value!r} needs a positive particle count, got {n}")

        if spec.distribution == "shell":
            theta = rng.random(n) * 2 * np.pi
            phi = np.arccos(2 * rng.random(n) - 1)
            r = spec.radius + (rng.random(n) - 0.5) * spec.thickness
            anchor = np.stack(
                [
                    r * np.sin(phi) * np.cos(theta),
                    r * np.sin(phi) * np.sin(theta),
                    r * np.cos(phi),
                ],
                axis=1,
            )
        elif spec.distribution == "volume":
            theta = rng.random(n) * 2 * np.pi
            phi = np.arccos(2 * rng.random(n) - 1)
            r = spec.radius * np.cbrt(rng.random(n))
            anchor = np.stack(
                [
                    r * np.sin(phi) * np.cos(theta),
                    r * np.sin(phi) * np.sin(theta),
                    r * np.cos(phi),
                ],
                axis=1,
            )
        elif spec.distribution == "ring":
            u = np.arange(n) / n * 2 * np.pi
            anchor = np.stack(
                [
                    spec.radius * np.cos(u),
                    spec.radius * np.sin(u),
                    (rng.random(n) - 0.5) * spec.thickness,
                ],
                axis=1,
            )
        else:
            raise ValueError(f"unknown distribution {spec.distribution!r}")

        phase = rng.random(n) * 2 * np.pi
        lo = np.asarray(spec.color_min, dtype=np.float32)
        hi = np.asarray(spec.color_max, dtype=np.float32)
        colors = lo + rng.random((n, 3)).astype(np.float32) * (hi - lo)

        return cls(spec.kind, anchor, phase, colors, name=name)
