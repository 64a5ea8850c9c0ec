"""
Software preview renderer.

Projects the engine's point clouds through a slowly orbiting perspective
camera, splats them additively into an HDR buffer, draws bolts as
segments, then applies exposure, thresholded bloom and vignette. It is a
reference for what a GPU renderer does with FrameOutput, fast enough for
offline video at modest resolutions.
"""

import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageDraw
from scipy.ndimage import gaussian_filter

from arcsphere.render.base import FrameRenderer
from arcsphere.render.colorgrade import add_bloom, exposure, tone_map_soft, vignette
from arcsphere.scene.layers import LayerKind, rotation_matrix

BOLT_COLOR = (0.75, 0.85, 1.0)


@dataclass
class PreviewConfig:
    """Configuration for the preview renderer."""

    width: int = 1280
    height: int = 720
    fps: int = 60

    # Camera
    camera_distance: float = 5.0
    fov_degrees: float = 75.0
    zoom: float = 2.2
    orbit_speed: float = 0.1  # rad/s around Y
    elevation: float = 0.25

    # Points and bolts
    point_sigma: float = 0.8
    point_gain: float = 0.6
    bolt_width: int = 2
    bolt_gain: float = 1.5
    core_glow: float = 0.5
    core_radius: float = 0.25

    # Post-processing
    bloom_enabled: bool = True
    bloom_radius_px: float = 12.0  # pixels per unit of bloom radius
    exposure_gain: float = 1.4
    vignette_strength: float = 0.3


def camera_matrix(azimuth: float, elevation: float) -> np.ndarray:
    """World-to-camera rotation: azimuth (around Y) then elevation (around X)."""
    ca, sa = math.cos(azimuth), math.sin(azimuth)
    ce, se = math.cos(elevation), math.sin(elevation)
    Ry = np.array([[ca, 0.0, sa], [0.0, 1.0, 0.0], [-sa, 0.0, ca]])
    Rx = np.array([[1.0, 0.0, 0.0], [0.0, ce, -se], [0.0, se, ce]])
    return Rx @ Ry


class PreviewRenderer(FrameRenderer):
    """Numpy/Pillow rasterizer for FrameOutput."""

    NEAR = 0.1

    def __init__(self, config: PreviewConfig | None = None):
        self.cfg = config or PreviewConfig()
        self._accum: np.ndarray | None = None
        self._disposed = False
        self._allocate()

    def _allocate(self):
        self._accum = np.zeros((self.cfg.height, self.cfg.width, 3), dtype=np.float32)

    def resize(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid surface size {width}x{height}")
        self.cfg.width = width
        self.cfg.height = height
        self._allocate()

    def dispose(self):
        self._accum = None
        self._disposed = True

    @property
    def focal_length(self) -> float:
        half_fov = math.radians(self.cfg.fov_degrees) / 2
        return self.cfg.height / 2 / math.tan(half_fov) * self.cfg.zoom

    def project(self, points: np.ndarray, time: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        World points to pixel coordinates.

        Returns:
            x_px, y_px, visible mask (in front of the near plane).
        """
        cam = camera_matrix(time * self.cfg.orbit_speed, self.cfg.elevation)
        p = np.atleast_2d(points) @ cam.T
        depth = self.cfg.camera_distance - p[:, 2]
        visible = depth > self.NEAR
        safe = np.where(visible, depth, 1.0)
        f = self.focal_length
        x_px = self.cfg.width / 2 + p[:, 0] / safe * f
        y_px = self.cfg.height / 2 - p[:, 1] / safe * f
        return x_px, y_px, visible

    def _splat_points(self, world: np.ndarray, colors: np.ndarray, weight: float, time: float):
        h, w = self.cfg.height, self.cfg.width
        x, y, vis = self.project(world, time)
        xi = np.round(x).astype(np.int64)
        yi = np.round(y).astype(np.int64)
        inside = vis & (xi >= 0) & (xi < w) & (yi >= 0) & (yi < h)
        if not np.any(inside):
            return
        contrib = colors[inside].astype(np.float32) * weight
        for c in range(3):
            np.add.at(self._accum[:, :, c], (yi[inside], xi[inside]), contrib[:, c])

    def _draw_bolts(self, frame, canvas: ImageDraw.ImageDraw):
        for bolt in frame.bolts:
            if not bolt.visible or bolt.opacity <= 0:
                continue
            half = bolt.direction * (bolt.length / 2)
            ends = np.stack([bolt.position - half, bolt.position + half])
            x, y, vis = self.project(ends, frame.time)
            if not np.all(vis):
                continue
            canvas.line(
                [(float(x[0]), float(y[0])), (float(x[1]), float(y[1]))],
                fill=float(bolt.opacity),
                width=self.cfg.bolt_width,
            )

    def _draw_core(self, frame, canvas: ImageDraw.ImageDraw):
        core = next((lf for lf in frame.layers if lf.kind is LayerKind.CORE), None)
        if core is None:
            return
        x, y, vis = self.project(core.position, frame.time)
        if not vis[0]:
            return
        depth = self.cfg.camera_distance
        r = self.cfg.core_radius * core.scale / depth * self.focal_length
        cx, cy = float(x[0]), float(y[0])
        canvas.ellipse([cx - r, cy - r, cx + r, cy + r], fill=self.cfg.core_glow)

    def render(self, frame) -> np.ndarray:
        """
        Rasterize one FrameOutput.

        Raises:
            RuntimeError: If the renderer has been disposed.
        """
        if self._disposed:
            raise RuntimeError("renderer has been disposed")

        cfg = self.cfg
        self._accum.fill(0.0)

        for lf in frame.layers:
            linear = rotation_matrix(*lf.rotation) * lf.scale
            world = lf.positions @ linear.T + lf.position
            self._splat_points(world, lf.colors, cfg.point_gain * lf.opacity, frame.time)

        if cfg.point_sigma > 0:
            for c in range(3):
                self._accum[:, :, c] = gaussian_filter(self._accum[:, :, c], sigma=cfg.point_sigma)

        # Bolts and core glow are drawn as grayscale masks, then tinted
        bolt_img = Image.new("F", (cfg.width, cfg.height), 0.0)
        self._draw_bolts(frame, ImageDraw.Draw(bolt_img))
        self._accum += np.asarray(bolt_img)[:, :, None] * (
            np.asarray(BOLT_COLOR, dtype=np.float32) * cfg.bolt_gain
        )

        core_img = Image.new("F", (cfg.width, cfg.height), 0.0)
        self._draw_core(frame, ImageDraw.Draw(core_img))
        core_mask = gaussian_filter(np.asarray(core_img), sigma=4.0)
        self._accum += core_mask[:, :, None] * np.asarray(frame.core_color, dtype=np.float32)

        rgb = exposure(self._accum, cfg.exposure_gain)
        if cfg.bloom_enabled:
            rgb = add_bloom(
                rgb,
                strength=frame.bloom.strength,
                radius=frame.bloom.radius * cfg.bloom_radius_px,
                threshold=frame.bloom.threshold,
            )
        rgb = vignette(rgb, cfg.vignette_strength)
        return tone_map_soft(rgb)
