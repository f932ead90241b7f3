"""Minimap overlay discovery.

The minimap in the top-left of the first-person view is framed by several
thin bracket/border shapes rather than one solid box. After thresholding,
each bracket shows up as a long, flat contour. The overlay is the bounding
union of every such contour:

1. Threshold the top-left quadrant to binary
2. Keep external contours with area > MIN_CONTOUR_AREA and
   width/height > MIN_CANDIDATE_ASPECT
3. Union their bounding rects
4. Reject the union unless width/height < MAX_MINIMAP_ASPECT (a stray
   horizontal shape on its own gives a long flat union, not a minimap)
"""
from __future__ import annotations

import logging

import cv2
import numpy as np

from .errors import DetectionFailed
from .geometry import CandidateRegion, Rect

log = logging.getLogger(__name__)

BINARY_THRESHOLD = 150
MIN_CONTOUR_AREA = 10
MIN_CANDIDATE_ASPECT = 3
MAX_MINIMAP_ASPECT = 2


def crop_top_left_quadrant(frame: np.ndarray) -> np.ndarray:
    """View of the top-left quarter of `frame` (no copy)."""
    h, w = frame.shape[:2]
    return frame[:h // 2, :w // 2]


def binarize(image: np.ndarray, level: int = BINARY_THRESHOLD) -> np.ndarray:
    """Grayscale + binary threshold. Accepts BGR or single-channel input."""
    gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    _, binary = cv2.threshold(gray, level, 255, cv2.THRESH_BINARY)
    return binary


def find_candidates(binary: np.ndarray) -> list[CandidateRegion]:
    """External contours shaped like minimap border pieces."""
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    candidates = []
    for contour in contours:
        area = cv2.contourArea(contour)
        rect = Rect.from_xywh(*cv2.boundingRect(contour))
        ar = rect.aspect_ratio
        if area > MIN_CONTOUR_AREA and ar > MIN_CANDIDATE_ASPECT:
            candidates.append(CandidateRegion(rect, area, ar))
    return candidates


def find_minimap_rect(binary: np.ndarray) -> Rect:
    """Bounding union of the candidate contours in a binary image.

    Raises:
        DetectionFailed: no candidates, or the union is too wide to be the minimap.
    """
    candidates = find_candidates(binary)
    if not candidates:
        raise DetectionFailed('could not find minimap rectangle: no candidate contours')

    rect = Rect.union(c.rect for c in candidates)
    if rect.aspect_ratio >= MAX_MINIMAP_ASPECT:
        raise DetectionFailed(
            f'could not find minimap rectangle: union {rect} has aspect '
            f'{rect.aspect_ratio:.2f} >= {MAX_MINIMAP_ASPECT}')
    return rect


class MinimapDetector:
    """Runs quadrant crop -> threshold -> contour union on a BGR frame."""

    def __init__(self, threshold: int = BINARY_THRESHOLD):
        self.threshold = threshold

    def detect(self, frame: np.ndarray) -> Rect:
        """Return the minimap rect in quadrant coordinates, or raise DetectionFailed."""
        quadrant = crop_top_left_quadrant(frame)
        if quadrant.size == 0:
            raise DetectionFailed(f'could not find minimap rectangle: frame {frame.shape[:2]} too small')
        return find_minimap_rect(binarize(quadrant, self.threshold))
