"""Tests for particle layers and transforms."""

import dataclasses
import math

import numpy as np
import pytest

from arcsphere.scene.layers import (
    LayerKind,
    ParticleLayer,
    Transform,
    default_layer_specs,
    ring_layer_spec,
    rotation_matrix,
)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


class TestLayerGeneration:
    """Tests for anchor, phase and color generation."""

    def test_default_specs_cover_target_kinds(self):
        kinds = [spec.kind for spec in default_layer_specs()]
        assert kinds == [LayerKind.CORE, LayerKind.INNER, LayerKind.MIDDLE]

    def test_shell_radius(self, rng, small_layer_specs):
        spec = small_layer_specs[2]
        layer = ParticleLayer.generate(spec, rng)
        r = np.linalg.norm(layer.anchor, axis=1)

        assert len(layer) == spec.count
        assert np.all(r >= spec.radius - spec.thickness / 2 - 1e-9)
        assert np.all(r <= spec.radius + spec.thickness / 2 + 1e-9)

    def test_volume_stays_inside_radius(self, rng, small_layer_specs):
        spec = small_layer_specs[0]
        layer = ParticleLayer.generate(spec, rng)
        assert np.linalg.norm(layer.anchor, axis=1).max() <= spec.radius + 1e-9

    def test_ring_is_flat(self, rng):
        spec = ring_layer_spec(count=50)
        layer = ParticleLayer.generate(spec, rng, name="ring-0")

        assert layer.name == "ring-0"
        assert np.allclose(np.hypot(layer.anchor[:, 0], layer.anchor[:, 1]), spec.radius)
        assert np.abs(layer.anchor[:, 2]).max() <= spec.thickness / 2

    def test_phase_range(self, rng, small_layer_specs):
        layer = ParticleLayer.generate(small_layer_specs[1], rng)
        assert layer.phase.min() >= 0.0
        assert layer.phase.max() < 2 * np.pi

    def test_colors_within_spec(self, rng, small_layer_specs):
        spec = small_layer_specs[1]
        layer = ParticleLayer.generate(spec, rng)
        lo = np.asarray(spec.color_min, dtype=np.float32)
        hi = np.asarray(spec.color_max, dtype=np.float32)

        assert np.all(layer.base_color >= lo - 1e-6)
        assert np.all(layer.base_color <= hi + 1e-6)

    def test_same_seed_same_layer(self, small_layer_specs):
        a = ParticleLayer.generate(small_layer_specs[1], np.random.default_rng(3))
        b = ParticleLayer.generate(small_layer_specs[1], np.random.default_rng(3))
        np.testing.assert_array_equal(a.anchor, b.anchor)
        np.testing.assert_array_equal(a.phase, b.phase)

    def test_zero_count_rejected(self, rng, small_layer_specs):
        spec = dataclasses.replace(small_layer_specs[1], count=0)
        with pytest.raises(ValueError):
            ParticleLayer.generate(spec, rng)

    def test_unknown_distribution_rejected(self, rng, small_layer_specs):
        spec = dataclasses.replace(small_layer_specs[1], distribution="cube")
        with pytest.raises(ValueError):
            ParticleLayer.generate(spec, rng)

    def test_empty_anchor_rejected(self):
        with pytest.raises(ValueError):
            ParticleLayer(LayerKind.INNER, np.zeros((0, 3)), np.zeros(0), np.zeros((0, 3)))

    def test_caller_arrays_stay_writeable(self):
        """The layer freezes its own copies, not the arrays handed to it."""
        anchor = np.zeros((4, 3))
        phase = np.zeros(4)
        colors = np.zeros((4, 3), dtype=np.float32)
        layer = ParticleLayer(LayerKind.INNER, anchor, phase, colors)

        assert anchor.flags.writeable
        assert phase.flags.writeable
        assert colors.flags.writeable
        anchor[0, 0] = 9.0
        assert layer.anchor[0, 0] == 0.0


class TestParticleLayer:
    """Tests for the live buffers."""

    def test_anchors_are_read_only(self, target_layers):
        layer = target_layers[LayerKind.INNER]
        with pytest.raises(ValueError):
            layer.anchor[0, 0] = 5.0
        with pytest.raises(ValueError):
            layer.phase[0] = 1.0

    def test_live_buffers_start_at_rest(self, target_layers):
        layer = target_layers[LayerKind.MIDDLE]
        np.testing.assert_array_equal(layer.live_position, layer.anchor)
        np.testing.assert_array_equal(layer.live_color, layer.base_color)

    def test_reset_colors_clears_highlight(self, target_layers):
        layer = target_layers[LayerKind.INNER]
        layer.highlight(3, (1.0, 1.0, 1.0))
        assert np.all(layer.live_color[3] == 1.0)

        layer.reset_colors()
        np.testing.assert_array_equal(layer.live_color, layer.base_color)

    def test_world_position_uses_transform(self, target_layers):
        layer = target_layers[LayerKind.INNER]
        layer.transform.scale = 2.0
        layer.transform.position[:] = (0.0, 1.0, 0.0)

        expected = layer.live_position[5] * 2.0 + np.array([0.0, 1.0, 0.0])
        np.testing.assert_allclose(layer.world_position(5), expected)
        np.testing.assert_allclose(layer.world_positions()[5], expected)


class TestTransform:
    """Tests for rotation order and look-at."""

    def test_rotation_is_orthonormal(self):
        R = rotation_matrix(0.3, -1.1, 2.0)
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(R) == pytest.approx(1.0)

    def test_identity(self):
        t = Transform()
        points = np.array([[1.0, 2.0, 3.0]])
        np.testing.assert_allclose(t.apply(points), points)

    def test_yaw_quarter_turn(self):
        t = Transform(rotation=np.array([0.0, math.pi / 2, 0.0]))
        out = t.apply_point(np.array([0.0, 0.0, 1.0]))
        np.testing.assert_allclose(out, [1.0, 0.0, 0.0], atol=1e-12)

    def test_apply_point_matches_apply(self):
        t = Transform(
            position=np.array([0.5, -0.2, 0.1]),
            rotation=np.array([0.4, 0.9, -0.3]),
            scale=1.3,
        )
        p = np.array([0.2, 0.7, -0.4])
        buf = np.empty(3)
        result = t.apply_point(p, out=buf)

        assert result is buf
        np.testing.assert_allclose(buf, t.apply(p[None, :])[0])

    @pytest.mark.parametrize(
        "position",
        [(0.6, 0.0, 0.0), (0.0, 0.0, -0.7), (0.3, 0.4, 0.5), (0.0, 0.9, 0.01)],
    )
    def test_look_at_origin(self, position):
        """Local +Z ends up pointing at the origin."""
        t = Transform(position=np.array(position, dtype=float))
        t.look_at_origin()

        forward = rotation_matrix(*t.rotation) @ np.array([0.0, 0.0, 1.0])
        expected = -np.asarray(position) / np.linalg.norm(position)
        np.testing.assert_allclose(forward, expected, atol=1e-9)

    def test_look_at_keeps_roll(self):
        t = Transform(position=np.array([0.5, 0.0, 0.0]), rotation=np.array([0.0, 0.0, 1.2]))
        t.look_at_origin()
        assert t.rotation[2] == 1.2

    def test_look_at_from_origin_is_noop(self):
        t = Transform(rotation=np.array([0.1, 0.2, 0.3]))
        t.look_at_origin()
        np.testing.assert_array_equal(t.rotation, [0.1, 0.2, 0.3])
