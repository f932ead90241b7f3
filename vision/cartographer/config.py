"""Session configuration, fixed for the lifetime of one tracking run."""
from __future__ import annotations

from dataclasses import dataclass

FRAME_QUEUE_SIZE = 1024   # frames buffered between capture and processing
RESULT_QUEUE_SIZE = 128   # localized points buffered before the presenter


@dataclass(frozen=True)
class SessionConfig:
    source: str
    frame_interval: int = 10          # sample one frame every N stream positions
    map_name: str = 'olympus'
    debug: bool = False
    show_gui: bool = False
    save_img: bool = False
    maps_dir: str = 'resources/maps'
    output_dir: str = 'data'
    scale: float | None = None        # overrides the map's calibration factor
    server: str | None = None
    raw_size: tuple[int, int] = (1920, 1080)  # (width, height) of stdin raw frames
    frame_queue_size: int = FRAME_QUEUE_SIZE
    result_queue_size: int = RESULT_QUEUE_SIZE

    def validate(self) -> 'SessionConfig':
        if self.frame_interval < 1:
            raise ValueError(f'frame interval must be >= 1, got {self.frame_interval}')
        if self.frame_queue_size < 1 or self.result_queue_size < 1:
            raise ValueError('queue sizes must be positive')
        if self.scale is not None and self.scale <= 0:
            raise ValueError(f'scale must be positive, got {self.scale}')
        return self
