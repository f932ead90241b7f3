"""Scale-corrected template matching of the minimap against the reference map.

The minimap crop is rescaled by the map's calibration factor so its pixels
line up with the reference image, then slid over the whole map with
TM_CCOEFF. The global maximum is taken as the match; no score threshold is
applied, so a poor match is still reported.
"""
from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from .errors import MatchError
from .geometry import Rect
from .minimap_detector import crop_top_left_quadrant

MATCH_METHOD = cv2.TM_CCOEFF


@dataclass(frozen=True)
class LocalizedPoint:
    """Position on the reference map for one processed frame."""
    x: int
    y: int
    frame_index: int = 0
    score: float = 0.0   # raw correlation maximum, informational only


@dataclass(frozen=True)
class MatchResult:
    rect: Rect
    point: LocalizedPoint


def rescale(image: np.ndarray, factor: float) -> np.ndarray:
    h, w = image.shape[:2]
    new_size = (max(1, int(w * factor)), max(1, int(h * factor)))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_LANCZOS4)


class TemplateMatcher:
    """Locates the minimap crop on a reference map image.

    Args:
        reference_map: BGR reference image. The matcher keeps its own reference.
        scale: Calibration factor applied to the minimap crop before matching.
    """

    def __init__(self, reference_map: np.ndarray, scale: float):
        if scale <= 0:
            raise ValueError(f'scale must be positive, got {scale}')
        self.reference_map = reference_map
        self.scale = scale

    def extract_template(self, frame: np.ndarray, minimap: Rect) -> np.ndarray:
        """Crop the minimap out of a frame and rescale it to map resolution."""
        rows, cols = minimap.to_slices()
        template = crop_top_left_quadrant(frame)[rows, cols]
        if template.size == 0:
            raise MatchError(f'minimap rect {minimap} is outside the frame')
        return rescale(template, self.scale)

    def match(self, template: np.ndarray) -> tuple[Rect, float]:
        """Best-correlated rect for `template` on the reference map."""
        map_h, map_w = self.reference_map.shape[:2]
        t_h, t_w = template.shape[:2]
        if t_h > map_h or t_w > map_w:
            raise MatchError(f'template {t_w}x{t_h} is larger than reference map {map_w}x{map_h}')
        if template.ndim != self.reference_map.ndim:
            raise MatchError('template and reference map channel counts differ')

        result = cv2.matchTemplate(self.reference_map, template, MATCH_METHOD)
        _, max_val, _, max_loc = cv2.minMaxLoc(result)
        return Rect.from_xywh(max_loc[0], max_loc[1], t_w, t_h), float(max_val)

    def locate(self, frame: np.ndarray, minimap: Rect, frame_index: int = 0) -> MatchResult:
        template = self.extract_template(frame, minimap)
        rect, score = self.match(template)
        cx, cy = rect.center
        return MatchResult(rect, LocalizedPoint(cx, cy, frame_index, score))
