"""
Renderer interface.

The engine only produces FrameOutput; anything that turns it into
pixels implements this interface.
"""

import abc

import numpy as np


class FrameRenderer(abc.ABC):
    """Consumes engine frames."""

    @abc.abstractmethod
    def render(self, frame) -> np.ndarray:
        """Draw one FrameOutput and return an (H, W, 3) uint8 image."""
        pass

    @abc.abstractmethod
    def resize(self, width: int, height: int):
        """Change the output surface. Must not touch engine state."""
        pass

    @abc.abstractmethod
    def dispose(self):
        """Release any held resources."""
        pass
