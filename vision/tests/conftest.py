"""Pytest fixtures for route tracker tests."""
import sys
from pathlib import Path

import numpy as np
import pytest

VISION_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(VISION_DIR))


class FakeCapture:
    """VideoCapture stand-in that replays a list of frames.

    A None entry reads back as an empty frame.
    """

    def __init__(self, frames, opened=True):
        self._frames = list(frames)
        self._pos = 0
        self._opened = opened
        self.released = False
        self.reads = 0

    def isOpened(self):
        return self._opened

    def read(self):
        if not self._opened or self._pos >= len(self._frames):
            return False, None
        frame = self._frames[self._pos]
        self._pos += 1
        self.reads += 1
        if frame is None:
            return True, np.empty((0, 0, 3), dtype=np.uint8)
        return True, frame

    def get(self, prop):
        import cv2
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return float(len(self._frames))
        return 0.0

    def release(self):
        self.released = True
        self._opened = False


def paint_minimap(frame, x=20, y=20, w=60, h=50, value=255):
    """Paint four flat border bars whose union is the (x, y, w, h) box.

    Coordinates are relative to the top-left quadrant (= the frame itself).
    """
    frame[y:y + 4, x:x + w] = value                 # top bar
    frame[y + h - 4:y + h, x:x + w] = value         # bottom bar
    frame[y + 20:y + 24, x:x + 16] = value          # left tick
    frame[y + 20:y + 24, x + w - 16:x + w] = value  # right tick
    return frame


@pytest.fixture
def fake_capture():
    return FakeCapture


@pytest.fixture
def textured_map():
    """Smooth random texture so correlation peaks are unambiguous."""
    import cv2
    rng = np.random.default_rng(1234)
    noise = rng.integers(0, 256, (300, 400, 3), dtype=np.uint8)
    return cv2.GaussianBlur(noise, (3, 3), 0)
