"""
Frame engine.

Owns every piece of per-frame state (layers, rotation accumulators, tip
forest, bolt pool) and advances it in a single synchronous ``tick``:

    spectrum -> bands -> (modulator, motion field, lightning) -> FrameOutput

The host calls ``tick`` once per display refresh. Nothing is scheduled
internally; ``stop`` releases the renderer and refuses further ticks.
"""

from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from arcsphere.core.bands import SILENCE, BandExtractor, BandRanges, BandSample
from arcsphere.core.spectrum import SpectrumSource
from arcsphere.lightning.automaton import LightningAutomaton, LightningConfig
from arcsphere.scene.layers import (
    LayerKind,
    LayerSpec,
    ParticleLayer,
    default_layer_specs,
    ring_layer_spec,
)
from arcsphere.scene.modulator import BloomParams, SceneModulator
from arcsphere.scene.motion import drive_layer


@dataclass
class EngineConfig:
    """Top-level engine configuration."""

    fps: int = 60
    bin_count: int = 256
    bands: BandRanges = field(default_factory=BandRanges)
    layers: list[LayerSpec] = field(default_factory=default_layer_specs)

    # Orbiting rings, drawn but never targeted by bolts
    rings: int = 0
    ring_particles: int = 1000

    lightning: LightningConfig = field(default_factory=LightningConfig)

    def layer_specs(self) -> list[LayerSpec]:
        """Shell specs followed by one spec per ring."""
        return list(self.layers) + [ring_layer_spec(self.ring_particles) for _ in range(self.rings)]


@dataclass
class LayerFrame:
    """Renderer view of one layer. Arrays are the engine's live buffers."""

    name: str
    kind: LayerKind
    positions: np.ndarray
    colors: np.ndarray
    position: np.ndarray
    rotation: np.ndarray
    scale: float
    opacity: float


@dataclass
class BoltFrame:
    """Renderer view of one bolt slot."""

    slot: int
    visible: bool
    position: np.ndarray  # segment midpoint
    direction: np.ndarray  # unit vector start -> end
    length: float
    opacity: float


@dataclass
class FrameOutput:
    """Everything the renderer needs for one tick."""

    index: int
    time: float
    bands: BandSample
    quiescent: bool
    layers: list[LayerFrame]
    bolts: list[BoltFrame]
    core_color: tuple[float, float, float]
    bloom: BloomParams


@dataclass
class EngineState:
    """Mutable state, touched only from ``ArcSphereEngine.tick``."""

    layers: list[ParticleLayer]
    specs: list[LayerSpec]
    targets: dict[LayerKind, ParticleLayer]
    automaton: LightningAutomaton
    modulator: SceneModulator
    bands: BandSample = SILENCE
    time: float = 0.0
    frame_index: int = 0


class ArcSphereEngine:
    """
    Audio-reactive point-cloud and lightning engine.

    Args:
        config: Engine configuration; defaults if None.
        source: Spectrum accessor; None means silence.
        seed: Seed for the single random generator behind layer
            generation, jitter and the lightning automaton.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        source: SpectrumSource | None = None,
        seed: int | None = None,
    ):
        self.cfg = config or EngineConfig()
        self.rng = np.random.default_rng(seed)
        self.source = source
        self.renderer = None
        self._stopped = False

        self.extractor = BandExtractor(self.cfg.bin_count, self.cfg.bands)
        self.state = self._build_state()

    def _build_state(self) -> EngineState:
        specs = self.cfg.layer_specs()
        layers = []
        ring_no = 0
        for spec in specs:
            name = None
            if spec.kind is LayerKind.RING:
                name = f"ring-{ring_no}"
                ring_no += 1
            layers.append(ParticleLayer.generate(spec, self.rng, name=name))

        # Bolts connect core, inner and middle; first layer of each kind wins
        targets: dict[LayerKind, ParticleLayer] = {}
        for layer in layers:
            if layer.kind is not LayerKind.RING:
                targets.setdefault(layer.kind, layer)

        # Arcs leave from the drawn core surface
        core_spec = next((s for s in specs if s.kind is LayerKind.CORE), None)
        automaton = LightningAutomaton(
            self.cfg.lightning,
            self.rng,
            core_radius=core_spec.radius if core_spec is not None else 0.25,
        )

        return EngineState(
            layers=layers,
            specs=specs,
            targets=targets,
            automaton=automaton,
            modulator=SceneModulator(),
        )

    @property
    def layers(self) -> list[ParticleLayer]:
        return self.state.layers

    @property
    def automaton(self) -> LightningAutomaton:
        return self.state.automaton

    @property
    def stopped(self) -> bool:
        return self._stopped

    def attach_source(self, source: SpectrumSource | None):
        self.source = source

    def attach_renderer(self, renderer):
        """Keep a handle on the renderer so ``stop`` can release it."""
        self.renderer = renderer

    def tick(self, t: float | None = None) -> FrameOutput:
        """
        Advance the simulation by one frame.

        Args:
            t: Elapsed time in seconds from the host clock. When None,
                time advances by ``1 / fps``.

        Returns:
            FrameOutput referencing this tick's live buffers; they are
            overwritten by the next tick.

        Raises:
            RuntimeError: If the engine has been stopped.
        """
        if self._stopped:
            raise RuntimeError("engine is stopped")

        st = self.state
        st.time = st.time + 1.0 / self.cfg.fps if t is None else float(t)
        st.bands = self.extractor.extract(self.source)

        for layer in st.layers:
            layer.reset_colors()

        scene = st.modulator.apply(st.layers, st.bands, st.time)

        for layer, spec in zip(st.layers, st.specs):
            drive_layer(layer, spec, st.time, st.bands, self.rng)

        st.automaton.step(st.bands, st.targets)

        frame = FrameOutput(
            index=st.frame_index,
            time=st.time,
            bands=st.bands,
            quiescent=st.automaton.quiescent,
            layers=[self._layer_frame(layer) for layer in st.layers],
            bolts=[self._bolt_frame(bolt) for bolt in st.automaton.pool],
            core_color=scene.core_color,
            bloom=scene.bloom,
        )
        st.frame_index += 1
        return frame

    @staticmethod
    def _layer_frame(layer: ParticleLayer) -> LayerFrame:
        xf = layer.transform
        return LayerFrame(
            name=layer.name,
            kind=layer.kind,
            positions=layer.live_position,
            colors=layer.live_color,
            position=xf.position,
            rotation=xf.rotation,
            scale=xf.scale,
            opacity=layer.opacity,
        )

    @staticmethod
    def _bolt_frame(bolt) -> BoltFrame:
        return BoltFrame(
            slot=bolt.slot,
            visible=bolt.visible,
            position=bolt.midpoint,
            direction=bolt.direction,
            length=bolt.length,
            opacity=bolt.opacity,
        )

    def run(self, n_frames: int | None = None) -> Iterator[FrameOutput]:
        """Tick repeatedly until ``n_frames`` or until stopped."""
        count = 0
        while not self._stopped and (n_frames is None or count < n_frames):
            yield self.tick()
            count += 1

    def stop(self):
        """Release the renderer and refuse further ticks."""
        if self._stopped:
            return
        self._stopped = True
        if self.renderer is not None:
            self.renderer.dispose()
            self.renderer = None
