"""
Color grading and post-processing.

Thresholded bloom, soft highlight compression and vignette for the
preview renderer's RGB frames.
"""

import numpy as np
from PIL import Image, ImageFilter


def exposure(accum: np.ndarray, gain: float = 1.0) -> np.ndarray:
    """
    Map an additive HDR accumulation buffer to uint8.

    Uses ``1 - exp(-gain * x)`` so dense regions saturate smoothly.

    Args:
        accum: (H, W, 3) float array, values >= 0.
        gain: Exposure multiplier.

    Returns:
        (H, W, 3) uint8 RGB array.
    """
    mapped = 1.0 - np.exp(-gain * np.maximum(accum, 0.0))
    return (np.clip(mapped, 0.0, 1.0) * 255).astype(np.uint8)


def add_bloom(
    frame: np.ndarray,
    strength: float = 1.2,
    radius: float = 8.0,
    threshold: float = 0.3,
) -> np.ndarray:
    """
    Screen-blend a blurred copy of the bright parts of the frame.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        strength: Bloom gain; values above 1 push the glow harder.
        radius: Blur radius in pixels.
        threshold: Luminance (0-1) below which pixels do not bloom.

    Returns:
        (H, W, 3) uint8 RGB array with bloom applied.
    """
    if strength <= 0 or radius <= 0:
        return frame

    frame_f = frame.astype(np.float32) / 255.0
    luma = frame_f @ np.array([0.2126, 0.7152, 0.0722], dtype=np.float32)
    knee = np.clip((luma - threshold) / max(1.0 - threshold, 1e-6), 0.0, 1.0)
    bright = (frame_f * knee[:, :, None] * 255).astype(np.uint8)

    blurred = Image.fromarray(bright).filter(ImageFilter.GaussianBlur(radius=radius))
    b = np.asarray(blurred, dtype=np.float32) / 255.0 * strength
    b = np.clip(b, 0.0, 1.0)

    # Screen blend: result = 1 - (1-a)(1-b)
    screen = 1.0 - (1.0 - frame_f) * (1.0 - b)
    return (screen * 255).astype(np.uint8)


def tone_map_soft(frame: np.ndarray, shoulder: float = 0.78) -> np.ndarray:
    """
    Roll off highlights above ``shoulder`` (fraction of full scale).

    Values below the knee are untouched; above it they approach 255
    asymptotically instead of clipping.
    """
    knee = shoulder * 255.0
    room = 255.0 - knee
    x = frame.astype(np.float32)
    over = np.clip(x - knee, 0.0, None)
    out = np.where(x > knee, knee + room * over / (over + room), x)
    return out.astype(np.uint8)


def vignette(frame: np.ndarray, strength: float = 0.4) -> np.ndarray:
    """Darken toward the corners; 0 leaves the frame alone, 1 blacks the corners."""
    if strength <= 0:
        return frame

    h, w = frame.shape[:2]
    yy, xx = np.ogrid[:h, :w]
    dy = (yy - h / 2) / (h / 2)
    dx = (xx - w / 2) / (w / 2)
    # Unit distance at the corners
    dist = np.sqrt((dx * dx + dy * dy) / 2.0).astype(np.float32)
    falloff = 1.0 - np.minimum(dist * strength, 1.0) ** 2
    return (frame * falloff[:, :, None]).astype(np.uint8)
