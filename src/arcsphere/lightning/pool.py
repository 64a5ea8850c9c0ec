"""
Lightning data model: tracks, tips and the fixed-size bolt pool.

Bolts live in an arena of slots indexed by integer id. Each slot owns
preallocated vector buffers that endpoint resolution writes into, so an
active bolt never allocates per tick.
"""

from dataclasses import dataclass, field

import numpy as np

from arcsphere.scene.layers import LayerKind


@dataclass(frozen=True)
class Track:
    """Particle endpoints of one bolt."""

    start_index: int
    start_layer: LayerKind
    end_index: int
    end_layer: LayerKind


@dataclass
class Tip:
    """Open end of a growing chain."""

    id: int
    index: int
    layer: LayerKind
    remaining_branches: int
    chain_depth: int = 0
    parent: int | None = None


@dataclass
class Bolt:
    """One pool slot. Inactive while ``life <= 0``."""

    slot: int
    life: int = 0
    max_life: int = 0
    track: Track | None = None
    source_tip: int | None = None

    start: np.ndarray = field(default_factory=lambda: np.zeros(3))
    end: np.ndarray = field(default_factory=lambda: np.zeros(3))
    midpoint: np.ndarray = field(default_factory=lambda: np.zeros(3))
    direction: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    length: float = 0.0
    opacity: float = 0.0
    visible: bool = False

    @property
    def active(self) -> bool:
        return self.life > 0

    def activate(self, track: Track, life: int, source_tip: int | None = None):
        self.track = track
        self.life = life
        self.max_life = life
        self.source_tip = source_tip
        self.visible = True

    def deactivate(self):
        self.life = 0
        self.track = None
        self.source_tip = None
        self.opacity = 0.0
        self.visible = False

    def fade(self, max_opacity: float) -> float:
        """Super-linear fade: dims sharply near end of life."""
        if self.max_life <= 0:
            self.opacity = 0.0
        else:
            self.opacity = (self.life / self.max_life) ** 1.5 * max_opacity
        return self.opacity


class BoltPool:
    """Fixed-capacity arena of bolt slots."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"bolt pool capacity must be positive, got {capacity}")
        self.slots = [Bolt(slot=i) for i in range(capacity)]

    def __len__(self) -> int:
        return len(self.slots)

    def __iter__(self):
        return iter(self.slots)

    def __getitem__(self, slot: int) -> Bolt:
        return self.slots[slot]

    @property
    def capacity(self) -> int:
        return len(self.slots)

    def active(self) -> list[Bolt]:
        return [b for b in self.slots if b.active]

    def active_count(self) -> int:
        return sum(1 for b in self.slots if b.active)

    def clear(self):
        for bolt in self.slots:
            bolt.deactivate()
