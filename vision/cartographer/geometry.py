"""Rectangles, detection candidates and the minimap latch."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Rect:
    """Axis-aligned box. (x1, y1) inclusive, (x2, y2) exclusive."""
    x1: int
    y1: int
    x2: int
    y2: int

    def __post_init__(self):
        if self.x1 > self.x2 or self.y1 > self.y2:
            raise ValueError(f'invalid rect corners: {self}')

    @classmethod
    def from_xywh(cls, x: int, y: int, w: int, h: int) -> 'Rect':
        return cls(int(x), int(y), int(x + w), int(y + h))

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def aspect_ratio(self) -> float:
        if self.height == 0:
            return float('inf')
        return self.width / self.height

    @property
    def center(self) -> tuple[int, int]:
        return self.x1 + self.width // 2, self.y1 + self.height // 2

    def to_slices(self) -> tuple[slice, slice]:
        """Row/column slices for indexing a numpy image."""
        return slice(self.y1, self.y2), slice(self.x1, self.x2)

    @staticmethod
    def union(rects: Iterable['Rect']) -> 'Rect':
        """Smallest rect containing every rect in `rects`."""
        rects = list(rects)
        if not rects:
            raise ValueError('union of no rects')
        return Rect(min(r.x1 for r in rects), min(r.y1 for r in rects),
                    max(r.x2 for r in rects), max(r.y2 for r in rects))


@dataclass(frozen=True)
class CandidateRegion:
    """A contour that passed the area/aspect filters during detection."""
    rect: Rect
    area: float
    aspect_ratio: float


class MinimapLatch:
    """Write-once holder for the discovered minimap rectangle.

    Once set, the rectangle is kept for the rest of the session even if
    later frames would no longer detect it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._value: Rect | None = None

    @property
    def value(self) -> Rect | None:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._value is not None

    def set_once(self, rect: Rect) -> bool:
        """Store `rect` if nothing is stored yet. Returns True if it was stored."""
        with self._lock:
            if self._value is not None:
                return False
            self._value = rect
            return True
