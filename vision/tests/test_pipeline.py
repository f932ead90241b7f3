"""Pipeline tests on synthetic frames.

Each frame carries a minimap in its top-left quadrant: four bright border
bars around a dim textured interior. The reference map contains an exact
copy of that minimap at a known offset, so with a scale of 1.0 every
processed frame must land on the same known center.
"""
import queue
import threading

import cv2
import numpy as np
import pytest

from cartographer.config import SessionConfig
from cartographer.errors import DetectionFailed
from cartographer.frame_source import FrameSource
from cartographer.geometry import MinimapLatch, Rect
from cartographer.minimap_detector import MinimapDetector
from cartographer.pipeline import (
    END_OF_STREAM,
    FrameProcessor,
    TrackingPipeline,
    get_or_stop,
    present_results,
    produce_frames,
    put_or_stop,
)
from cartographer.template_matcher import TemplateMatcher
from cartographer.trail_presenter import TrailPresenter
from conftest import paint_minimap

MM = Rect.from_xywh(20, 20, 60, 50)    # minimap box inside the quadrant
MAP_X0, MAP_Y0 = 210, 130              # where the minimap sits on the map
EXPECTED = (MAP_X0 + MM.width // 2, MAP_Y0 + MM.height // 2)


@pytest.fixture
def scene(textured_map):
    frame = np.zeros((240, 320, 3), dtype=np.uint8)
    rows, cols = MM.to_slices()
    frame[rows, cols] = textured_map[:MM.height, :MM.width] // 2   # stays below threshold
    paint_minimap(frame, MM.x1, MM.y1, MM.width, MM.height)

    ref = textured_map.copy()
    ref[MAP_Y0:MAP_Y0 + MM.height, MAP_X0:MAP_X0 + MM.width] = frame[rows, cols]
    return frame, ref


def _pipeline(frames, ref, fake_capture, show_gui=False, frame_queue_size=1024,
              result_queue_size=128, detector=None):
    cap = fake_capture(frames)
    pipeline = TrackingPipeline(
        FrameSource(cap, frame_interval=1),
        FrameProcessor(detector or MinimapDetector(), TemplateMatcher(ref, 1.0)),
        TrailPresenter(ref, show_gui=show_gui),
        frame_queue_size, result_queue_size)
    return pipeline, cap


class CountingDetector(MinimapDetector):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        return super().detect(frame)


# ── put_or_stop / get_or_stop ────────────────────────────────────────────────

def test_put_gives_up_when_stopped():
    q = queue.Queue(maxsize=1)
    stop = threading.Event()
    assert put_or_stop(q, 1, stop)
    stop.set()
    assert not put_or_stop(q, 2, stop)


def test_get_returns_end_when_stopped():
    stop = threading.Event()
    stop.set()
    assert get_or_stop(queue.Queue(), stop) is END_OF_STREAM


# ── FrameProcessor ───────────────────────────────────────────────────────────

def test_processor_localizes_frame(scene):
    frame, ref = scene
    processor = FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0))
    point = processor.process(4, frame)
    assert processor.latch.value == MM
    assert (point.x, point.y) == EXPECTED
    assert point.frame_index == 4


def test_processor_skips_frame_until_detected(scene):
    frame, ref = scene
    processor = FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0))
    assert processor.process(0, np.zeros_like(frame)) is None
    assert not processor.latch.is_set
    assert processor.process(1, frame) is not None


def test_latched_region_is_never_redetected(scene):
    frame, ref = scene
    detector = CountingDetector()
    processor = FrameProcessor(detector, TemplateMatcher(ref, 1.0))
    processor.process(0, frame)
    blank = np.zeros_like(frame)
    with pytest.raises(DetectionFailed):
        detector.detect(blank)
    detector.calls = 0
    for i in range(3):
        assert processor.process(i + 1, blank) is not None
    assert detector.calls == 0
    assert processor.latch.value == MM


def test_preset_latch_skips_detection(scene):
    frame, ref = scene
    latch = MinimapLatch()
    latch.set_once(MM)
    detector = CountingDetector()
    point = FrameProcessor(detector, TemplateMatcher(ref, 1.0), latch).process(0, frame)
    assert (point.x, point.y) == EXPECTED
    assert detector.calls == 0


def test_match_error_drops_frame(scene):
    frame, _ = scene
    tiny_map = np.zeros((10, 10, 3), dtype=np.uint8)
    processor = FrameProcessor(MinimapDetector(), TemplateMatcher(tiny_map, 1.0))
    assert processor.process(0, frame) is None
    assert processor.latch.is_set


def test_debug_overlay_written_once(scene, tmp_path):
    frame, ref = scene
    processor = FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0),
                               debug_dir=str(tmp_path))
    processor.process(0, frame)
    overlay = cv2.imread(str(tmp_path / 'minimap-debug.png'))
    assert overlay.shape == (120, 160, 3)
    assert tuple(int(c) for c in overlay[MM.y1 + 10, MM.x1]) == (0, 255, 0)


# ── queue closing ────────────────────────────────────────────────────────────

def test_closed_frame_queue_closes_result_queue(scene):
    frame, ref = scene
    frame_q, result_q = queue.Queue(), queue.Queue()
    stop = threading.Event()
    frame_q.put((0, frame))
    frame_q.put(END_OF_STREAM)
    processor = FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0))
    assert processor.run(frame_q, result_q, stop) == 1
    assert result_q.get_nowait() is not END_OF_STREAM
    assert result_q.get_nowait() is END_OF_STREAM


def test_presenter_stops_on_closed_queue(scene):
    _, ref = scene
    result_q = queue.Queue()
    result_q.put(END_OF_STREAM)
    assert present_results(TrailPresenter(ref), result_q, threading.Event()) == 0


def test_producer_closes_queue_on_open_failure(fake_capture):
    q = queue.Queue()
    cap = fake_capture([np.zeros((4, 4, 3), np.uint8)], opened=False)
    assert produce_frames(FrameSource(cap), q, threading.Event()) == 0
    assert q.get_nowait() is END_OF_STREAM
    assert q.empty()


def test_producer_backpressure_loses_no_frames(fake_capture):
    frames = [np.full((4, 4, 3), i, np.uint8) for i in range(40)]
    q = queue.Queue(maxsize=2)
    stop = threading.Event()
    received = []

    def consume():
        while True:
            item = q.get()
            if item is END_OF_STREAM:
                return
            received.append(item[0])

    consumer = threading.Thread(target=consume)
    consumer.start()
    produce_frames(FrameSource(fake_capture(frames), frame_interval=3), q, stop)
    consumer.join(5)
    assert received == list(range(0, 40, 3))


# ── end to end ───────────────────────────────────────────────────────────────

def test_pipeline_localizes_every_frame(scene, fake_capture):
    frame, ref = scene
    frames = [np.zeros_like(frame)] + [frame.copy() for _ in range(5)]
    pipeline, cap = _pipeline(frames, ref, fake_capture)
    assert pipeline.run() == 5
    assert cap.released
    cx, cy = EXPECTED
    assert pipeline.presenter.trail[cy, cx].any()


def test_pipeline_with_tiny_queues(scene, fake_capture):
    frame, ref = scene
    frames = [frame.copy() for _ in range(20)]
    pipeline, _ = _pipeline(frames, ref, fake_capture,
                            frame_queue_size=1, result_queue_size=1)
    assert pipeline.run() == 20


def test_pipeline_drains_empty_on_open_failure(scene, fake_capture):
    _, ref = scene
    cap = fake_capture([], opened=False)
    pipeline = TrackingPipeline(
        FrameSource(cap), FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0)),
        TrailPresenter(ref))
    assert pipeline.run() == 0


def test_user_stop_unwinds_workers(scene, fake_capture, monkeypatch):
    frame, ref = scene
    monkeypatch.setattr(cv2, 'imshow', lambda name, img: None)
    monkeypatch.setattr(cv2, 'waitKey', lambda delay: 27)
    monkeypatch.setattr(cv2, 'destroyWindow', lambda name: None)
    frames = [frame] * 200
    pipeline, cap = _pipeline(frames, ref, fake_capture, show_gui=True,
                              frame_queue_size=2, result_queue_size=2)
    assert pipeline.run() == 1
    assert pipeline.stop.is_set()
    assert cap.released
    assert cap.reads < 200


def test_from_config_saves_route(scene, fake_capture, tmp_path):
    frame, ref = scene
    maps_dir = tmp_path / 'maps'
    maps_dir.mkdir()
    cv2.imwrite(str(maps_dir / 'olympus.png'), ref)
    config = SessionConfig(source='unused.mp4', frame_interval=2, save_img=True,
                           maps_dir=str(maps_dir), output_dir=str(tmp_path / 'out'),
                           scale=1.0)
    pipeline = TrackingPipeline.from_config(config, capture=fake_capture([frame] * 6))
    assert pipeline.run() == 3
    route = cv2.imread(str(tmp_path / 'out' / 'olympus-route.png'))
    cx, cy = EXPECTED
    assert route[cy, cx].any()
    assert not (route[cy, cx] == ref[cy, cx]).all()


def test_from_config_uses_map_scale(scene, fake_capture, tmp_path):
    _, ref = scene
    cv2.imwrite(str(tmp_path / 'olympus.png'), ref)
    config = SessionConfig(source='unused.mp4', maps_dir=str(tmp_path))
    pipeline = TrackingPipeline.from_config(config, capture=fake_capture([]))
    assert pipeline.processor.matcher.scale == pytest.approx(0.71)
    assert pipeline.processor.matcher.reference_map is not pipeline.presenter.trail


def test_degenerate_frame_does_not_end_session(scene, fake_capture):
    frame, ref = scene
    sliver = np.full((1, 320, 3), 10, dtype=np.uint8)
    frames = [sliver] + [frame.copy() for _ in range(5)]
    pipeline, _ = _pipeline(frames, ref, fake_capture)
    assert pipeline.run() == 5


def test_default_queue_sizes_come_from_config(scene, fake_capture):
    from cartographer.config import FRAME_QUEUE_SIZE, RESULT_QUEUE_SIZE
    _, ref = scene
    pipeline = TrackingPipeline(
        FrameSource(fake_capture([])),
        FrameProcessor(MinimapDetector(), TemplateMatcher(ref, 1.0)),
        TrailPresenter(ref))
    assert pipeline.frame_q.maxsize == FRAME_QUEUE_SIZE
    assert pipeline.result_q.maxsize == RESULT_QUEUE_SIZE
