"""Video frame sampling.

Frames come from an OpenCV capture (file, URL or camera index) or from raw
bgr24 frames piped on stdin, e.g.:

    ffmpeg -i match.mp4 -pix_fmt bgr24 -vcodec rawvideo -f rawvideo pipe:1 \\
        | python route_tracker.py --source - --width 1920 --height 1080

A stop event is checked between reads only. A read that is already blocked
(e.g. stdin waiting on ffmpeg) finishes before the source notices the stop.
"""
from __future__ import annotations

import logging
import sys
import threading
from typing import BinaryIO, Iterator

import cv2
import numpy as np

from .errors import StreamOpenError

log = logging.getLogger(__name__)

PROGRESS_EVERY = 100  # reads between progress log lines


class RawVideoPipe:
    """Minimal VideoCapture look-alike over a stream of raw bgr24 frames."""

    def __init__(self, stream: BinaryIO, width: int, height: int):
        self._stream = stream
        self.width = width
        self.height = height
        self.frame_size = width * height * 3
        self._open = stream is not None

    def isOpened(self) -> bool:
        return self._open

    def read(self) -> tuple[bool, np.ndarray | None]:
        if not self._open:
            return False, None
        raw = self._stream.read(self.frame_size)
        if len(raw) < self.frame_size:
            return False, None
        frame = np.frombuffer(raw, dtype=np.uint8).reshape((self.height, self.width, 3))
        return True, frame.copy()

    def get(self, prop: int) -> float:
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self.width)
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self.height)
        return 0.0

    def release(self) -> None:
        self._open = False


def open_capture(source: str, raw_size: tuple[int, int] | None = None):
    """Open `source`: '-' for stdin raw frames, digits for a camera, else a path/URL."""
    if source == '-':
        if raw_size is None:
            raise StreamOpenError('raw stdin frames need a frame size')
        width, height = raw_size
        capture = RawVideoPipe(sys.stdin.buffer, width, height)
    elif source.isdigit():
        capture = cv2.VideoCapture(int(source))
    else:
        capture = cv2.VideoCapture(source)

    if not capture.isOpened():
        capture.release()
        raise StreamOpenError(f'error opening video source: {source}')
    return capture


def _is_empty(frame) -> bool:
    return frame is None or frame.size == 0


class FrameSource:
    """Samples one frame every `frame_interval` stream positions.

    The first usable frame is always emitted. Empty or corrupt reads are
    dropped and do not count as a sample, so the next good frame takes
    their place.
    """

    def __init__(self, capture, frame_interval: int = 1, name: str = 'video'):
        if frame_interval < 1:
            raise ValueError(f'frame interval must be >= 1, got {frame_interval}')
        self.capture = capture
        self.frame_interval = frame_interval
        self.name = name
        self._closed = False

    @property
    def total_frames(self) -> int:
        return int(self.capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)

    def frames(self, stop: threading.Event | None = None
               ) -> Iterator[tuple[int, np.ndarray]]:
        """Yield (stream index, frame) pairs until the stream ends or `stop` is set.

        Raises:
            StreamOpenError: the capture is not open; nothing is yielded.
        """
        if not self.capture.isOpened():
            raise StreamOpenError(f'error opening video source: {self.name}')
        total = self.total_frames
        index = -1
        skip = 0
        while stop is None or not stop.is_set():
            ok, frame = self.capture.read()
            if not ok:
                log.info(f'Device closed: {self.name} ({index + 1}/{total or "?"} frames read)')
                return
            index += 1

            if (index + 1) % PROGRESS_EVERY == 0:
                log.info(f'Frame {index + 1}/{total or "?"}')

            if skip > 0:
                skip -= 1
                continue
            if _is_empty(frame):
                log.debug(f'Dropping empty frame {index}')
                continue

            yield index, frame
            skip = self.frame_interval - 1
        log.info(f'Stopped reading {self.name} after {index + 1} frames')

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.capture.release()
