"""Optional HTTP sink for localized points."""
from __future__ import annotations

import logging

import requests

from .template_matcher import LocalizedPoint

log = logging.getLogger(__name__)


class PointPublisher:
    """POSTs each point to `<server>/api/route/<map_name>`.

    Push failures are logged and otherwise ignored so a flaky server never
    stalls tracking.
    """

    def __init__(self, server: str, map_name: str, timeout: float = 1.0):
        self.url = f'{server.rstrip("/")}/api/route/{map_name}'
        self.timeout = timeout
        self.failures = 0

    def publish(self, point: LocalizedPoint) -> bool:
        payload = {'x': point.x, 'y': point.y,
                   'frame': point.frame_index, 'score': point.score}
        try:
            requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.failures += 1
            log.warning(f'Push failed: {e}')
            return False
        return True
