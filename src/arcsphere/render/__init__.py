"""Reference renderer, post-processing and video encoding."""

from arcsphere.render.base import FrameRenderer
from arcsphere.render.preview import PreviewConfig, PreviewRenderer
