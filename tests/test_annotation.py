"""
标注状态机测试
"""
import math
import sys
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "SST"))

from annotation_core import AnnotationEngine, AwaitingSecondPoint, Idle
from detection import OutlineDetector
from errors import DetectionBusy, DetectionEmpty, StorageFailure, ToolStateConflict, ValidationError
from models import MeasurementType, Point, ToolType
from settings import Settings
from storage import InMemoryRecordStore, RecordStore


class FixedDetector(OutlineDetector):
    def __init__(self, outline):
        self.outline = outline
        self.calls = 0

    def detect_at(self, image, x, y):
        self.calls += 1
        return list(self.outline)


class ReentrantDetector(OutlineDetector):
    """检测过程中再次触发 highlight"""

    def __init__(self):
        self.engine = None
        self.inner_error = None

    def detect_at(self, image, x, y):
        try:
            self.engine.highlight(Point(x, y))
        except DetectionBusy as e:
            self.inner_error = e
        return [Point(0, 0), Point(10, 0), Point(10, 10)]


class FailingStore(RecordStore):
    def save(self, record):
        raise StorageFailure("磁盘已满")

    def get_all(self):
        return []

    def delete(self, record_id):
        pass


@pytest.fixture
def engine():
    e = AnnotationEngine()
    e.load_image(np.zeros((200, 200, 3), dtype=np.uint8))
    return e


def test_length_gesture_with_assumed_baseline(engine):
    assert engine.click(ToolType.LENGTH, Point(10, 10)) is None
    assert isinstance(engine.tool_state, AwaitingSecondPoint)
    assert engine.tool_state.tool is ToolType.LENGTH

    m = engine.click(ToolType.LENGTH, Point(110, 10))
    assert isinstance(engine.tool_state, Idle)
    assert m.type is MeasurementType.LENGTH
    assert m.pixel_distance == pytest.approx(100)
    assert m.values['length'] == pytest.approx(5.0)
    assert engine.state.manual_measurements == (m,)


def test_girth_uses_calibrated_axis(engine):
    engine.calibrate('girth', Point(0, 0), Point(25, 0))
    engine.click(ToolType.GIRTH, Point(0, 0))
    m = engine.click(ToolType.GIRTH, Point(0, 40))
    assert m.values['girth'] == pytest.approx(4.0)


def test_area_gesture(engine):
    engine.click(ToolType.AREA, Point(50, 50))
    m = engine.click(ToolType.AREA, Point(60, 50))
    assert m.type is MeasurementType.AREA
    assert m.center_point == Point(50, 50)
    assert m.radius == pytest.approx(10)
    assert m.values['area'] == pytest.approx(math.pi * 100 * 0.05 ** 2)


def test_switching_tool_abandons_pending_gesture(engine):
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.GIRTH, Point(5, 5))
    assert engine.tool_state == AwaitingSecondPoint(ToolType.GIRTH, Point(5, 5))

    m = engine.click(ToolType.GIRTH, Point(5, 55))
    assert m.type is MeasurementType.GIRTH
    assert len(engine.state.manual_measurements) == 1


def test_complete_without_start(engine):
    with pytest.raises(ToolStateConflict):
        engine.complete(Point(1, 1))


def test_cancel(engine):
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.cancel()
    assert engine.state.is_idle
    assert engine.state.manual_measurements == ()


def test_begin_rejects_single_click_tool(engine):
    with pytest.raises(ValueError):
        engine.begin(ToolType.REFERENCE, Point(0, 0))


def test_reference_ring(engine):
    p1, p2, p3 = Point(1, 1), Point(2, 2), Point(3, 3)
    engine.click(ToolType.REFERENCE, p1)
    assert engine.state.reference_points.length == p1
    assert engine.state.reference_points.girth is None

    engine.click(ToolType.REFERENCE, p2)
    assert engine.state.reference_points.length == p1
    assert engine.state.reference_points.girth == p2

    engine.click(ToolType.REFERENCE, p3)
    assert engine.state.reference_points.length == p3
    assert engine.state.reference_points.girth is None


def test_reference_point_resets_axis_scale(engine):
    engine.calibrate('length', Point(0, 0), Point(10, 0))
    assert engine.calibration.scale_for('length') == pytest.approx(0.25)
    engine.place_reference(Point(5, 5))
    assert engine.calibration.scale_for('length') is None


def test_highlight_replaces_outline():
    outline = [Point(0, 0), Point(20, 0), Point(20, 20)]
    engine = AnnotationEngine(detector=FixedDetector(outline))
    engine.load_image(np.zeros((50, 50), dtype=np.uint8))

    result = engine.click(ToolType.HIGHLIGHT, Point(5, 5))
    assert result is None
    assert engine.state.object_outline == tuple(outline)


def test_highlight_empty_keeps_state(engine):
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(10, 0))
    before = engine.state
    with pytest.raises(DetectionEmpty):
        engine.highlight(Point(5, 5))
    assert engine.state is before


def test_highlight_requires_image():
    with pytest.raises(ValueError):
        AnnotationEngine().highlight(Point(0, 0))


def test_overlapping_highlight_rejected():
    detector = ReentrantDetector()
    engine = AnnotationEngine(detector=detector)
    detector.engine = engine
    engine.load_image(np.zeros((50, 50), dtype=np.uint8))

    engine.highlight(Point(5, 5))
    assert isinstance(detector.inner_error, DetectionBusy)
    assert len(engine.state.object_outline) == 3


def test_listeners_receive_each_state(engine):
    seen = []
    engine.add_listener(seen.append)
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(0, 10))
    engine.clear()
    assert len(seen) == 3
    assert seen[-1].is_empty

    engine.remove_listener(seen.append)
    engine.click(ToolType.LENGTH, Point(0, 0))
    assert len(seen) == 3


def test_build_snapshot_uses_latest_measurements(engine):
    engine.place_reference(Point(1, 1))
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(0, 200))
    now = datetime(2024, 3, 1, tzinfo=timezone.utc)

    snap = engine.build_snapshot(confidence=0.9, now=now)
    assert snap.length == pytest.approx(10.0)
    assert snap.girth is None
    assert snap.timestamp == now
    assert snap.reference_object_detected
    assert snap.reference_size == pytest.approx(2.5)
    assert len(snap.manual_measurements) == 1


def test_build_snapshot_converts_inches(engine):
    snap = engine.build_snapshot(length=5, girth=4, unit='in')
    assert snap.length == pytest.approx(12.7)
    assert snap.girth == pytest.approx(10.16)
    assert snap.unit == 'cm'


@pytest.mark.parametrize("kwargs", [
    {},
    {'length': -1.0},
    {'length': 0.0},
    {'girth': float('nan')},
    {'length': 5.0, 'confidence': 1.5},
])
def test_build_snapshot_validation(engine, kwargs):
    with pytest.raises(ValidationError):
        engine.build_snapshot(**kwargs)


def test_save_persists_and_clears(engine):
    store = InMemoryRecordStore()
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(0, 100))

    snap = engine.save(store)
    assert store.get_all() == [snap]
    assert engine.state.is_empty


def test_failed_validation_writes_nothing(engine):
    store = InMemoryRecordStore()
    with pytest.raises(ValidationError):
        engine.save(store)
    assert store.get_all() == []


def test_storage_failure_keeps_state(engine):
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(0, 100))
    with pytest.raises(StorageFailure):
        engine.save(FailingStore())
    assert len(engine.state.manual_measurements) == 1


def test_from_settings():
    settings = Settings(reference_size_cm=5.0, assumed_reference_pixels=100)
    engine = AnnotationEngine.from_settings(settings)
    engine.click(ToolType.LENGTH, Point(0, 0))
    m = engine.click(ToolType.LENGTH, Point(100, 0))
    assert m.values['length'] == pytest.approx(5.0)


def test_load_image_discards_annotations(engine):
    engine.click(ToolType.LENGTH, Point(0, 0))
    engine.click(ToolType.LENGTH, Point(0, 100))
    engine.calibrate('length', Point(0, 0), Point(10, 0))
    engine.load_image(np.zeros((10, 10, 3), dtype=np.uint8))
    assert engine.state.is_empty
    assert engine.calibration.scale_for('length') is None
