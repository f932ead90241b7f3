"""Reference map registry.

Each map carries its own calibration factor: the ratio between the size of
the minimap area as drawn on the reference image and its size in the
first-person overlay. The factors are measured by hand per map.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

import cv2
import numpy as np

from .errors import UnknownMapError


@dataclass(frozen=True)
class MapSpec:
    name: str
    filename: str
    scale: float


MAPS = {
    'olympus': MapSpec('olympus', 'olympus.png', 0.71),
}


def resolve_map(name: str, maps_dir: str = 'resources/maps') -> tuple[str, MapSpec]:
    """Return (image path, spec) for a named map."""
    spec = MAPS.get(name)
    if spec is None:
        raise UnknownMapError(f'unknown map: {name} (known: {", ".join(sorted(MAPS))})')
    return os.path.join(maps_dir, spec.filename), spec


def load_reference_map(path: str) -> np.ndarray:
    """Read a reference map as a BGR image."""
    img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise UnknownMapError(f'cannot read reference map image: {path}')
    return img


def route_image_path(output_dir: str, map_name: str) -> str:
    return os.path.join(output_dir, f'{map_name}-route.png')
