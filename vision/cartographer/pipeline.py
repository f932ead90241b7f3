"""Three-stage tracking pipeline.

    FrameSource --frame queue--> FrameProcessor --result queue--> TrailPresenter

Producer and processor run on worker threads; the presenter runs on the
calling thread because HighGUI windows must live on the main thread.
Each queue is closed once by its only producer with END_OF_STREAM, and
the consumer closes its own downstream queue in turn. A user stop sets a
shared Event that every blocking put/get polls, so the workers unwind and
release the capture instead of being killed.
"""
from __future__ import annotations

import logging
import os
import queue
import threading

import cv2
import numpy as np

from .config import FRAME_QUEUE_SIZE, RESULT_QUEUE_SIZE, SessionConfig
from .errors import DetectionFailed, MatchError, StreamOpenError
from .frame_source import FrameSource, open_capture
from .geometry import MinimapLatch
from .maps import load_reference_map, resolve_map, route_image_path
from .minimap_detector import MinimapDetector, crop_top_left_quadrant
from .point_publisher import PointPublisher
from .template_matcher import LocalizedPoint, TemplateMatcher
from .trail_presenter import TrailPresenter

log = logging.getLogger(__name__)

END_OF_STREAM = object()
POLL_INTERVAL = 0.1     # seconds between stop checks while blocked
JOIN_TIMEOUT = 5.0


def put_or_stop(q: queue.Queue, item, stop: threading.Event) -> bool:
    """Blocking put that gives up once `stop` is set. Returns True if queued."""
    while not stop.is_set():
        try:
            q.put(item, timeout=POLL_INTERVAL)
            return True
        except queue.Full:
            continue
    return False


def get_or_stop(q: queue.Queue, stop: threading.Event):
    """Blocking get that returns END_OF_STREAM once `stop` is set."""
    while not stop.is_set():
        try:
            return q.get(timeout=POLL_INTERVAL)
        except queue.Empty:
            continue
    return END_OF_STREAM


def produce_frames(source: FrameSource, frame_q: queue.Queue,
                   stop: threading.Event) -> int:
    """Feed sampled frames into `frame_q`, then close it. Returns frames queued."""
    log.info('Starting frame producer...')
    queued = 0
    try:
        for index, frame in source.frames(stop):
            if not put_or_stop(frame_q, (index, frame), stop):
                break
            queued += 1
    except StreamOpenError as e:
        log.error(str(e))
    finally:
        source.close()
        put_or_stop(frame_q, END_OF_STREAM, stop)
        log.info(f'Frame producer stopped! ({queued} frames queued)')
    return queued


class FrameProcessor:
    """Detects the minimap once, then localizes every frame on the map."""

    def __init__(self, detector: MinimapDetector, matcher: TemplateMatcher,
                 latch: MinimapLatch | None = None, debug_dir: str | None = None):
        self.detector = detector
        self.matcher = matcher
        self.latch = latch if latch is not None else MinimapLatch()
        self.debug_dir = debug_dir

    def process(self, index: int, frame: np.ndarray) -> LocalizedPoint | None:
        """Localize one frame. Returns None when the frame has to be skipped."""
        if not self.latch.is_set:
            log.info('Minimap not found yet, detecting...')
            try:
                rect = self.detector.detect(frame)
            except DetectionFailed as e:
                log.info(f'{e} (frame {index})')
                return None
            if self.latch.set_once(rect):
                log.info(f'Minimap found at: {rect.x1}x{rect.y1} ({rect.width}x{rect.height})')
                if self.debug_dir:
                    self._save_debug(frame)

        try:
            result = self.matcher.locate(frame, self.latch.value, frame_index=index)
        except MatchError as e:
            log.warning(f'Match failed on frame {index}: {e}')
            return None
        log.debug(f'Frame {index}: match at {result.rect} score={result.point.score:.0f}')
        return result.point

    def _save_debug(self, frame: np.ndarray) -> None:
        quadrant = crop_top_left_quadrant(frame).copy()
        rect = self.latch.value
        cv2.rectangle(quadrant, (rect.x1, rect.y1), (rect.x2, rect.y2), (0, 255, 0), 2)
        os.makedirs(self.debug_dir, exist_ok=True)
        path = os.path.join(self.debug_dir, 'minimap-debug.png')
        cv2.imwrite(path, quadrant)
        log.debug(f'Wrote minimap overlay to {path}')

    def run(self, frame_q: queue.Queue, result_q: queue.Queue,
            stop: threading.Event) -> int:
        """Drain `frame_q` into `result_q` until closed, then close `result_q`."""
        log.info('Starting video frame processor...')
        produced = 0
        try:
            while True:
                item = get_or_stop(frame_q, stop)
                if item is END_OF_STREAM:
                    log.info('No more frames to process!')
                    break
                point = self.process(*item)
                if point is None:
                    continue
                if not put_or_stop(result_q, point, stop):
                    break
                produced += 1
        finally:
            put_or_stop(result_q, END_OF_STREAM, stop)
            log.info(f'Frame processor stopped! ({produced} points)')
        return produced


def present_results(presenter: TrailPresenter, result_q: queue.Queue,
                    stop: threading.Event) -> int:
    """Present points until the queue closes or the user stops."""
    log.info('Starting results presenter...')
    try:
        while True:
            point = get_or_stop(result_q, stop)
            if point is END_OF_STREAM:
                log.info('No more results')
                break
            if not presenter.present(point):
                stop.set()
                break
    finally:
        presenter.close()
        log.info('Results presenter stopped!')
    return presenter.count


class TrackingPipeline:
    """Wires a frame source, processor and presenter together for one session."""

    def __init__(self, source: FrameSource, processor: FrameProcessor,
                 presenter: TrailPresenter,
                 frame_queue_size: int = FRAME_QUEUE_SIZE,
                 result_queue_size: int = RESULT_QUEUE_SIZE):
        self.source = source
        self.processor = processor
        self.presenter = presenter
        self.frame_q: queue.Queue = queue.Queue(maxsize=frame_queue_size)
        self.result_q: queue.Queue = queue.Queue(maxsize=result_queue_size)
        self.stop = threading.Event()

    @classmethod
    def from_config(cls, config: SessionConfig, capture=None) -> 'TrackingPipeline':
        """Build a pipeline from a session config.

        Resolves the map first so an unknown map aborts before the stream is
        touched. `capture` replaces opening `config.source`.
        """
        config.validate()
        map_path, map_spec = resolve_map(config.map_name, config.maps_dir)
        scale = config.scale if config.scale is not None else map_spec.scale

        # Matcher and presenter each hold their own copy of the map.
        matcher = TemplateMatcher(load_reference_map(map_path), scale)
        route_path = route_image_path(config.output_dir, config.map_name) if config.save_img else None
        publisher = PointPublisher(config.server, config.map_name) if config.server else None
        presenter = TrailPresenter(load_reference_map(map_path), route_path=route_path,
                                   show_gui=config.show_gui, publisher=publisher)

        if capture is None:
            capture = open_capture(config.source, config.raw_size)
        source = FrameSource(capture, config.frame_interval, name=config.source)
        processor = FrameProcessor(MinimapDetector(), matcher,
                                   debug_dir=config.output_dir if config.debug else None)
        log.info(f'Tracking on map {config.map_name} (scale {scale}), '
                 f'sampling every {config.frame_interval} frames')
        return cls(source, processor, presenter,
                   config.frame_queue_size, config.result_queue_size)

    def run(self) -> int:
        """Run until end of stream or user stop. Returns points presented."""
        producer = threading.Thread(
            target=produce_frames, args=(self.source, self.frame_q, self.stop),
            name='frame-producer', daemon=True)
        processor = threading.Thread(
            target=self.processor.run, args=(self.frame_q, self.result_q, self.stop),
            name='frame-processor', daemon=True)
        producer.start()
        processor.start()
        try:
            count = present_results(self.presenter, self.result_q, self.stop)
        finally:
            self.stop.set()
            for t in (producer, processor):
                t.join(JOIN_TIMEOUT)
                if t.is_alive():
                    log.warning(f'{t.name} did not stop within {JOIN_TIMEOUT}s')
        return count
