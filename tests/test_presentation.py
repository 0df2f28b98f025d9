"""
覆盖层、提示、图表与报告入口测试
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "SST"))

from annotation_core import AnnotationEngine
from charts import export_charts
from errors import DetectionEmpty, InsufficientData, StorageFailure, ValidationError
from models import Achievement, MeasurementSnapshot, Point, ToolType
from notices import Notice, notice_for
from overlay import render_overlay
from projection import PredictiveProjector
from storage import JsonKeyValueStore, JsonRecordStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_series(lengths):
    return [MeasurementSnapshot(id=f"s{i}", timestamp=T0 + timedelta(days=i), length=l, girth=8 + i * 0.1)
            for i, l in enumerate(lengths)]


class TestOverlay:

    def test_draws_without_mutating_input(self):
        image = np.zeros((120, 120, 3), dtype=np.uint8)
        engine = AnnotationEngine()
        engine.load_image(image)
        engine.click(ToolType.LENGTH, Point(10, 10))
        engine.click(ToolType.LENGTH, Point(100, 10))
        engine.click(ToolType.AREA, Point(60, 60))
        engine.click(ToolType.AREA, Point(70, 60))
        engine.place_reference(Point(20, 100))
        engine.click(ToolType.GIRTH, Point(30, 30))

        vis = render_overlay(image, engine.state, unit='in')
        assert vis.shape == image.shape
        assert vis.any()
        assert not image.any()

    def test_same_state_same_pixels(self):
        image = np.full((60, 60, 3), 40, dtype=np.uint8)
        engine = AnnotationEngine()
        engine.load_image(image)
        engine.click(ToolType.GIRTH, Point(5, 5))
        engine.click(ToolType.GIRTH, Point(50, 50))
        assert np.array_equal(render_overlay(image, engine.state),
                              render_overlay(image, engine.state))

    def test_requires_image(self):
        with pytest.raises(ValueError):
            render_overlay(None, AnnotationEngine().state)


class TestNotices:

    def test_snapshot_notice(self):
        notice = notice_for(make_series([10.0])[0])
        assert notice.variant == 'success'
        assert "10.00" in notice.description

    def test_snapshot_notice_in_display_unit(self):
        snapshot = MeasurementSnapshot(id="a", timestamp=T0, length=12.7, girth=10.16)
        notice = notice_for(snapshot, unit='in')
        assert "5.00 in" in notice.description
        assert "4.00 in" in notice.description
        assert "cm" not in notice.description

    @pytest.mark.parametrize("error, variant", [
        (ValidationError("缺少长度"), 'warning'),
        (DetectionEmpty(3, 4), 'warning'),
        (StorageFailure("磁盘已满"), 'destructive'),
        (InsufficientData(2, 1), 'default'),
        (RuntimeError("boom"), 'destructive'),
    ])
    def test_error_notices(self, error, variant):
        notice = notice_for(error)
        assert isinstance(notice, Notice)
        assert notice.variant == variant
        assert notice.description

    def test_achievement_notice(self):
        notice = notice_for(Achievement('first-measurement', "First Steps", "记录第一次测量"))
        assert "First Steps" in notice.description

    def test_unsupported_outcome(self):
        with pytest.raises(TypeError):
            notice_for(42)


class TestCharts:

    def test_export_with_projection(self, tmp_path):
        snapshots = make_series([10, 10.2, 10.5])
        steps = PredictiveProjector().project(snapshots, 'length')
        path = export_charts(str(tmp_path / "progress.png"), snapshots, steps, unit='in')
        assert Path(path).stat().st_size > 0

    def test_export_empty(self, tmp_path):
        path = export_charts(str(tmp_path / "empty.png"), [])
        assert Path(path).exists()


class TestReport:

    def _populate(self, data_dir, lengths):
        store = JsonRecordStore(str(data_dir / "snapshots"))
        for snapshot in make_series(lengths):
            store.save(snapshot)

    def test_report_and_chart(self, tmp_path, capsys):
        from main import main
        self._populate(tmp_path, [10, 10.2, 10.5])
        chart = tmp_path / "chart.png"
        assert main([str(tmp_path), '--range', 'all', '--chart', str(chart)]) == 0
        out = capsys.readouterr().out
        assert "测量进度报告" in out
        assert "增长次数: 2" in out
        assert "成就解锁: First Steps" in out
        assert chart.exists()

    def test_report_to_file_in_inches(self, tmp_path):
        from main import main
        self._populate(tmp_path, [10])
        output = tmp_path / "report.txt"
        assert main([str(tmp_path), '--unit', 'in', '--output', str(output)]) == 0
        assert "报告结束" in output.read_text(encoding='utf-8')
        assert JsonKeyValueStore(str(tmp_path / "store.json")).get('settings')['display_unit'] == 'in'
