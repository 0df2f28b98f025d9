"""
轮廓检测测试（合成图像）
"""
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "SST"))

from detection import ContourOutlineDetector, NullOutlineDetector, load_image
from settings import Settings


@pytest.fixture
def disk_image():
    image = np.zeros((200, 200, 3), dtype=np.uint8)
    cv2.circle(image, (100, 100), 40, (255, 255, 255), -1)
    return image


def test_detects_disk_outline(disk_image):
    outline = ContourOutlineDetector().detect_at(disk_image, 100, 100)
    assert len(outline) >= 4

    xs = [p.x for p in outline]
    ys = [p.y for p in outline]
    assert min(xs) == pytest.approx(60, abs=4)
    assert max(xs) == pytest.approx(140, abs=4)
    assert min(ys) == pytest.approx(60, abs=4)
    assert max(ys) == pytest.approx(140, abs=4)


def test_background_click_is_empty(disk_image):
    assert ContourOutlineDetector().detect_at(disk_image, 5, 5) == []


def test_out_of_bounds_click(disk_image):
    assert ContourOutlineDetector().detect_at(disk_image, 500, 10) == []


def test_small_region_filtered():
    image = np.zeros((100, 100), dtype=np.uint8)
    cv2.rectangle(image, (40, 40), (45, 45), 255, -1)
    detector = ContourOutlineDetector(min_area=100)
    assert detector.detect_at(image, 42, 42) == []


def test_from_settings():
    detector = ContourOutlineDetector.from_settings(Settings(detect_tolerance=35, detect_min_area=10))
    assert detector.tolerance == 35
    assert detector.min_area == 10


def test_null_detector(disk_image):
    assert NullOutlineDetector().detect_at(disk_image, 100, 100) == []


def test_load_image(tmp_path, disk_image):
    path = tmp_path / "photo.png"
    cv2.imwrite(str(path), disk_image)
    loaded = load_image(str(path))
    assert loaded.shape == (200, 200, 3)

    with pytest.raises(ValueError):
        load_image(str(tmp_path / "missing.png"))
