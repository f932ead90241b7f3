"""Draws localized points as a colored trail on the reference map."""
from __future__ import annotations

import logging
import os

import cv2
import numpy as np

from .hsv import CW, HSV
from .point_publisher import PointPublisher
from .template_matcher import LocalizedPoint

log = logging.getLogger(__name__)

HUE_STEP = 5        # degrees per point, clockwise
MARKER_RADIUS = 3
WINDOW_NAME = 'Map movement'


class TrailPresenter:
    """Accumulates markers on a private copy of the reference map.

    Args:
        reference_map: BGR reference image (copied, never modified).
        route_path: If set, the trail image is rewritten here after every point.
        show_gui: Show the trail in a HighGUI window; any key press stops the run.
        publisher: Optional sink that receives every point.
    """

    def __init__(self, reference_map: np.ndarray, route_path: str | None = None,
                 show_gui: bool = False, publisher: PointPublisher | None = None):
        self.trail = reference_map.copy()
        self.color = HSV(0, 1.0, 1.0)
        self.route_path = route_path
        self.show_gui = show_gui
        self.publisher = publisher
        self.count = 0
        if route_path:
            os.makedirs(os.path.dirname(route_path) or '.', exist_ok=True)

    def draw(self, point: LocalizedPoint) -> None:
        self.color.rotate_hue(HUE_STEP, CW)
        cv2.circle(self.trail, (point.x, point.y), MARKER_RADIUS,
                   self.color.bgr(), thickness=cv2.FILLED)

    def present(self, point: LocalizedPoint) -> bool:
        """Render one point. Returns False when the user asked to stop."""
        self.draw(point)
        self.count += 1
        log.info(f'Found point at: ({point.x}, {point.y})')

        if self.route_path:
            cv2.imwrite(self.route_path, self.trail)
        if self.publisher is not None:
            self.publisher.publish(point)

        if self.show_gui:
            cv2.imshow(WINDOW_NAME, self.trail)
            if self.poll_stop():
                log.info('User requested to stop processing...')
                return False
        return True

    def poll_stop(self) -> bool:
        return cv2.waitKey(1) >= 0

    def close(self) -> None:
        if self.show_gui:
            cv2.destroyWindow(WINDOW_NAME)
