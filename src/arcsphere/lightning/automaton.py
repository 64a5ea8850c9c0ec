"""
Lightning automaton.

Grows chains of short-lived arcs ("bolts") between particles on the
shells. Activation is gated on vocal-range energy (mid plus weighted
treble); bass only controls how often a chain forks.

Per tick, every pool slot is visited once:
  - active slots age by one tick, or by ``forced_decay`` while the
    automaton is quiescent, and either expire or get re-resolved;
  - inactive slots below the permitted connection count try to spawn a
    new bolt from a random open chain tip.

A chain starts from a synthetic root tip on the core and can extend at
most ``max_depth`` hops, so every lineage terminates.
"""

from dataclasses import dataclass
from typing import Mapping

import numpy as np

from arcsphere.core.bands import BandSample
from arcsphere.lightning.endpoints import HIGHLIGHT_COLOR, resolve_endpoints
from arcsphere.lightning.pool import Bolt, BoltPool, Tip, Track
from arcsphere.scene.layers import LayerKind, ParticleLayer


@dataclass
class LightningConfig:
    """Tuning for the lightning automaton."""

    pool_size: int = 30

    # Gating
    treble_weight: float = 1.5
    activation_threshold: float = 0.15
    connection_gain: float = 40.0  # connections per unit of vocal intensity

    # Bolt life, in ticks
    min_life: int = 10
    max_life: int = 40
    forced_decay: int = 4
    max_opacity: float = 0.9

    # Chains
    seed_probability: float = 0.1
    max_root_branches: int = 3
    inner_bias: float = 0.6  # chance an arc lands on the inner shell
    max_depth: int = 4
    branch_base: float = 0.15
    branch_bass_gain: float = 0.6
    max_tips: int = 64

    highlight_color: tuple[float, float, float] = HIGHLIGHT_COLOR

    def validate(self):
        """
        Raises:
            ValueError: On a configuration the automaton cannot run with.
        """
        if self.pool_size <= 0:
            raise ValueError(f"pool_size must be positive, got {self.pool_size}")
        if not 1 <= self.min_life <= self.max_life:
            raise ValueError(
                f"life range must satisfy 1 <= min_life <= max_life, "
                f"got {self.min_life}..{self.max_life}"
            )
        if self.forced_decay < 1:
            raise ValueError("forced_decay must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth must not be negative")
        if self.max_root_branches < 1 or self.max_tips < 1:
            raise ValueError("max_root_branches and max_tips must be at least 1")


class LightningAutomaton:
    """
    Owns the tip forest and the bolt pool.

    All randomness comes from the generator passed in, so a seeded
    generator makes runs reproducible.
    """

    def __init__(
        self,
        config: LightningConfig | None = None,
        rng: np.random.Generator | None = None,
        core_radius: float = 0.25,
    ):
        self.cfg = config or LightningConfig()
        # Unscaled radius of the core layer; arcs leave from its surface
        self.core_radius = core_radius
        self.cfg.validate()
        self.rng = rng if rng is not None else np.random.default_rng()

        self.pool = BoltPool(self.cfg.pool_size)
        self.tips: list[Tip] = []
        self._next_tip_id = 0

        self.quiescent = True
        self.vocal = 0.0
        self.requested_connections = 0
        self.active_connections = 0
        self.spawn_count = 0

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def gate(self, bands: BandSample):
        """Update quiescence and the permitted connection count."""
        cfg = self.cfg
        self.vocal = bands.vocal_intensity(cfg.treble_weight)
        self.quiescent = self.vocal < cfg.activation_threshold
        if self.quiescent:
            self.requested_connections = 0
        else:
            self.requested_connections = int(self.vocal * cfg.connection_gain)
        # Demand beyond the pool is clamped, not an error
        self.active_connections = min(self.requested_connections, self.pool.capacity)

    # ------------------------------------------------------------------
    # Tips
    # ------------------------------------------------------------------

    def new_tip(
        self,
        index: int,
        layer: LayerKind,
        remaining_branches: int,
        chain_depth: int = 0,
        parent: int | None = None,
    ) -> Tip:
        """Create and register an open tip."""
        tip = Tip(
            id=self._next_tip_id,
            index=index,
            layer=layer,
            remaining_branches=remaining_branches,
            chain_depth=chain_depth,
            parent=parent,
        )
        self._next_tip_id += 1
        if len(self.tips) >= self.cfg.max_tips:
            self.tips.pop(0)
        self.tips.append(tip)
        return tip

    def _seed_root(self, layers: Mapping[LayerKind, ParticleLayer]) -> Tip | None:
        if self.rng.random() >= self.cfg.seed_probability:
            return None
        core = layers.get(LayerKind.CORE)
        if core is None:
            return None
        index = int(self.rng.integers(core.count))
        branches = int(self.rng.integers(1, self.cfg.max_root_branches + 1))
        return self.new_tip(index, LayerKind.CORE, branches, chain_depth=0)

    def _pick_end_layer(self) -> LayerKind:
        if self.rng.random() < self.cfg.inner_bias:
            return LayerKind.INNER
        return LayerKind.MIDDLE

    def branch_probability(self, bass: float) -> float:
        return min(1.0, self.cfg.branch_base + self.cfg.branch_bass_gain * bass)

    # ------------------------------------------------------------------
    # Bolts
    # ------------------------------------------------------------------

    def try_spawn(
        self,
        bolt: Bolt,
        bands: BandSample,
        layers: Mapping[LayerKind, ParticleLayer],
    ) -> bool:
        """
        Attempt to start a new bolt in an inactive slot.

        Returns:
            True if the slot became active. No spawn happens when there
            are no tips and the seed roll fails or there is no core to
            root on, or when the end layer is empty.
        """
        cfg = self.cfg

        if not self.tips and self._seed_root(layers) is None:
            return False

        source = self.tips[int(self.rng.integers(len(self.tips)))]

        end_layer = self._pick_end_layer()
        target = layers.get(end_layer)
        end_count = target.count if target is not None else 0
        if end_count == 0:
            return False
        end_index = int(self.rng.integers(end_count))

        track = Track(
            start_index=source.index,
            start_layer=source.layer,
            end_index=end_index,
            end_layer=end_layer,
        )
        life = int(self.rng.integers(cfg.min_life, cfg.max_life + 1))
        bolt.activate(track, life, source_tip=source.id)

        # Source is retired first: new_tip may evict the oldest tip.
        source.remaining_branches -= 1
        if source.remaining_branches <= 0:
            self.tips.remove(source)

        if source.chain_depth < cfg.max_depth:
            forks = 2 if self.rng.random() < self.branch_probability(bands.bass) else 1
            self.new_tip(
                end_index,
                end_layer,
                forks,
                chain_depth=source.chain_depth + 1,
                parent=source.id,
            )

        resolve_endpoints(bolt, layers, self.core_radius, cfg.highlight_color)
        bolt.fade(cfg.max_opacity)
        self.spawn_count += 1
        return True

    def _age(self, bolt: Bolt, layers: Mapping[LayerKind, ParticleLayer]):
        step = self.cfg.forced_decay if self.quiescent else 1
        bolt.life = max(0, bolt.life - step)
        if bolt.life <= 0:
            bolt.deactivate()
            return
        resolve_endpoints(bolt, layers, self.core_radius, self.cfg.highlight_color)
        bolt.fade(self.cfg.max_opacity)

    def step(self, bands: BandSample, layers: Mapping[LayerKind, ParticleLayer]):
        """
        Advance every slot by one tick.

        Args:
            bands: This tick's band sample.
            layers: Bolt target layers by kind, with live positions and
                transforms already updated for this tick.
        """
        self.gate(bands)

        for bolt in self.pool:
            if bolt.active:
                self._age(bolt, layers)
            elif bolt.slot < self.active_connections:
                self.try_spawn(bolt, bands, layers)

        # Let the next burst grow fresh from the core
        if self.quiescent and self.pool.active_count() == 0:
            self.tips.clear()

    def reset(self):
        self.pool.clear()
        self.tips.clear()
        self.quiescent = True
        self.vocal = 0.0
        self.requested_connections = 0
        self.active_connections = 0
