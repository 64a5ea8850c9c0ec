"""Tests for the frame engine."""

import dataclasses

import numpy as np
import pytest

from arcsphere.core.spectrum import StaticSpectrum
from arcsphere.engine import ArcSphereEngine, EngineConfig, FrameOutput
from arcsphere.lightning.automaton import LightningConfig
from arcsphere.render.base import FrameRenderer
from arcsphere.scene.layers import LayerKind


class FakeRenderer(FrameRenderer):
    """Records calls instead of drawing."""

    def __init__(self):
        self.rendered = 0
        self.sizes = []
        self.disposed = 0

    def render(self, frame):
        self.rendered += 1
        return np.zeros((2, 2, 3), dtype=np.uint8)

    def resize(self, width, height):
        self.sizes.append((width, height))

    def dispose(self):
        self.disposed += 1


@pytest.fixture
def engine(small_config, vocal_source):
    return ArcSphereEngine(small_config, source=vocal_source, seed=1)


class TestSilence:
    """No source attached."""

    def test_silence_is_quiet(self, small_config):
        engine = ArcSphereEngine(small_config, seed=0)
        for frame in engine.run(120):
            assert frame.quiescent
            assert frame.bands.as_dict() == {"bass": 0.0, "mid": 0.0, "treble": 0.0}
            assert not any(b.visible for b in frame.bolts)

        assert engine.automaton.spawn_count == 0

    def test_particles_keep_moving(self, small_config):
        engine = ArcSphereEngine(small_config, seed=0)
        first = engine.tick().layers[1].positions.copy()
        second = engine.tick().layers[1].positions
        assert not np.allclose(first, second)

    def test_silent_transforms(self, small_config):
        frame = ArcSphereEngine(small_config, seed=0).tick()
        for lf in frame.layers:
            assert lf.scale == 1.0
        assert frame.core_color == pytest.approx((0.35, 0.15, 0.5))


class TestTick:
    """Tests for one synchronous engine step."""

    def test_frame_shape(self, engine, small_config):
        frame = engine.tick()

        assert isinstance(frame, FrameOutput)
        assert [lf.kind for lf in frame.layers] == [
            LayerKind.CORE,
            LayerKind.INNER,
            LayerKind.MIDDLE,
        ]
        assert len(frame.bolts) == small_config.lightning.pool_size
        for lf, spec in zip(frame.layers, small_config.layers):
            assert lf.positions.shape == (spec.count, 3)
            assert lf.colors.shape == (spec.count, 3)

    def test_vocal_source_lights_bolts(self, engine):
        frames = list(engine.run(10))

        assert not frames[-1].quiescent
        assert engine.automaton.spawn_count > 0
        assert any(b.visible for b in frames[-1].bolts)

    def test_bolt_frames_describe_segments(self, engine):
        for frame in engine.run(10):
            for bolt in frame.bolts:
                if bolt.visible:
                    assert 0.0 < bolt.opacity <= 0.9
                    assert np.linalg.norm(bolt.direction) == pytest.approx(1.0)

    def test_highlights_reset_every_tick(self, engine):
        """Only particles at the end of a live bolt are highlighted."""
        for _ in range(10):
            engine.tick()

        ends = {}
        for bolt in engine.automaton.pool.active():
            ends.setdefault(bolt.track.end_layer, set()).add(bolt.track.end_index)

        for layer in engine.layers:
            highlighted = set(np.flatnonzero(np.any(layer.live_color != layer.base_color, axis=1)))
            assert highlighted <= ends.get(layer.kind, set())

    def test_frame_indices_and_time(self, engine, small_config):
        frames = [engine.tick() for _ in range(3)]
        assert [f.index for f in frames] == [0, 1, 2]
        assert frames[2].time == pytest.approx(3 / small_config.fps)

    def test_host_clock(self, engine):
        assert engine.tick(2.5).time == 2.5
        assert engine.tick(2.6).time == 2.6

    def test_run_count(self, engine):
        assert len(list(engine.run(7))) == 7

    def test_anchors_unchanged(self, engine):
        before = [layer.anchor.copy() for layer in engine.layers]
        for _ in range(20):
            engine.tick()
        for layer, anchor in zip(engine.layers, before):
            np.testing.assert_array_equal(layer.anchor, anchor)

    def test_detach_source_goes_quiet(self, engine):
        engine.tick()
        engine.attach_source(None)
        assert engine.tick().quiescent

    def test_saturated_input(self, small_config, saturated_bins):
        engine = ArcSphereEngine(small_config, source=StaticSpectrum(saturated_bins), seed=2)
        frame = engine.tick()

        assert frame.bands.bass == 1.0
        assert engine.automaton.active_connections == small_config.lightning.pool_size


class TestConfiguration:
    def test_same_seed_same_frames(self, small_config, vocal_source):
        def run(seed):
            engine = ArcSphereEngine(small_config, source=vocal_source, seed=seed)
            for _ in range(15):
                frame = engine.tick()
            return frame.layers[2].positions.copy(), [b.opacity for b in frame.bolts]

        pos_a, bolts_a = run(5)
        pos_b, bolts_b = run(5)
        np.testing.assert_array_equal(pos_a, pos_b)
        assert bolts_a == bolts_b

    def test_rings_are_drawn_but_not_targeted(self, small_config, vocal_source):
        config = dataclasses.replace(small_config, rings=3)
        engine = ArcSphereEngine(config, source=vocal_source, seed=4)
        for _ in range(30):
            frame = engine.tick()

        rings = [lf for lf in frame.layers if lf.kind is LayerKind.RING]
        assert [lf.name for lf in rings] == ["ring-0", "ring-1", "ring-2"]
        assert all(lf.positions.shape == (60, 3) for lf in rings)
        assert LayerKind.RING not in engine.state.targets
        for bolt in engine.automaton.pool.active():
            assert bolt.track.start_layer is not LayerKind.RING
            assert bolt.track.end_layer is not LayerKind.RING

    def test_invalid_lightning_config(self, small_config):
        config = dataclasses.replace(small_config, lightning=LightningConfig(pool_size=0))
        with pytest.raises(ValueError):
            ArcSphereEngine(config)

    def test_invalid_layer_count(self, small_config):
        layers = [dataclasses.replace(small_config.layers[0], count=0)] + small_config.layers[1:]
        with pytest.raises(ValueError):
            ArcSphereEngine(dataclasses.replace(small_config, layers=layers))

    def test_without_core_no_bolts(self, small_config, vocal_source):
        """Shells without a core still animate; no chain can start."""
        layers = [s for s in small_config.layers if s.kind is not LayerKind.CORE]
        engine = ArcSphereEngine(
            dataclasses.replace(small_config, layers=layers), source=vocal_source, seed=6
        )
        for frame in engine.run(20):
            assert not frame.quiescent
            assert not any(b.visible for b in frame.bolts)
        assert engine.automaton.spawn_count == 0

    def test_arcs_leave_the_core_surface(self, small_config, vocal_source):
        """The arc start radius follows the core layer's own radius."""
        layers = [dataclasses.replace(small_config.layers[0], radius=0.4)] + small_config.layers[1:]
        engine = ArcSphereEngine(
            dataclasses.replace(small_config, layers=layers), source=vocal_source, seed=8
        )
        for _ in range(5):
            engine.tick()

        assert engine.automaton.core_radius == 0.4
        core = engine.state.targets[LayerKind.CORE]
        from_core = [
            b for b in engine.automaton.pool.active() if b.track.start_layer is LayerKind.CORE
        ]
        assert from_core
        for bolt in from_core:
            dist = np.linalg.norm(bolt.start - core.transform.position)
            assert dist == pytest.approx(0.4 * core.transform.scale)

    def test_default_config(self):
        config = EngineConfig()
        assert config.fps == 60
        assert config.lightning.pool_size == 30
        assert [s.count for s in config.layer_specs()] == [600, 2000, 3000]


class TestLifecycle:
    """Tests for renderer attachment and stop."""

    def test_stop_disposes_renderer(self, engine):
        renderer = FakeRenderer()
        engine.attach_renderer(renderer)
        engine.stop()
        engine.stop()

        assert renderer.disposed == 1
        assert engine.stopped

    def test_tick_after_stop_raises(self, engine):
        engine.stop()
        with pytest.raises(RuntimeError):
            engine.tick()

    def test_run_ends_when_stopped(self, engine):
        frames = 0
        for _ in engine.run():
            frames += 1
            if frames == 4:
                engine.stop()
        assert frames == 4

    def test_resize_leaves_engine_alone(self, engine):
        renderer = FakeRenderer()
        engine.attach_renderer(renderer)
        engine.tick()
        positions = engine.layers[1].live_position.copy()
        index = engine.state.frame_index

        renderer.resize(640, 480)

        np.testing.assert_array_equal(engine.layers[1].live_position, positions)
        assert engine.state.frame_index == index
