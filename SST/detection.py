"""
轮廓检测模块 - 可替换的目标轮廓检测策略
"""
import logging
from abc import ABC, abstractmethod
from typing import List

import cv2
import numpy as np
from skimage.segmentation import flood

from models import Point
from utils import DETECT_TOLERANCE, DETECT_MIN_AREA_PX, DETECT_EPSILON_RATIO

logger = logging.getLogger(__name__)

DETECT_MAX_AREA_RATIO = 0.9   # 区域超过图像面积该比例时视为背景


def load_image(path: str) -> np.ndarray:
    """加载图像"""
    image = cv2.imread(path)
    if image is None:
        raise ValueError(f"无法加载图像: {path}")
    return image


class OutlineDetector(ABC):
    """目标轮廓检测接口：返回点击位置所在目标的多边形，未找到时返回空列表"""

    @abstractmethod
    def detect_at(self, image: np.ndarray, x: float, y: float) -> List[Point]:
        raise NotImplementedError


class NullOutlineDetector(OutlineDetector):
    """不做任何检测"""

    def detect_at(self, image: np.ndarray, x: float, y: float) -> List[Point]:
        return []


class ContourOutlineDetector(OutlineDetector):
    """以点击点为种子做区域生长，再提取外轮廓并做多边形近似"""

    def __init__(self, tolerance: int = DETECT_TOLERANCE,
                 min_area: int = DETECT_MIN_AREA_PX,
                 epsilon_ratio: float = DETECT_EPSILON_RATIO,
                 blur_kernel: int = 5):
        self.tolerance = tolerance
        self.min_area = min_area
        self.epsilon_ratio = epsilon_ratio
        self.blur_kernel = blur_kernel

    @classmethod
    def from_settings(cls, settings) -> 'ContourOutlineDetector':
        return cls(tolerance=settings.detect_tolerance, min_area=settings.detect_min_area)

    def _region_mask(self, image: np.ndarray, row: int, col: int) -> np.ndarray:
        """区域生长得到目标掩码"""
        if image.ndim == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image
        blurred = cv2.GaussianBlur(gray, (self.blur_kernel, self.blur_kernel), 0)
        mask = flood(blurred, (row, col), tolerance=self.tolerance)
        mask = mask.astype(np.uint8) * 255

        kernel = np.ones((3, 3), np.uint8)
        return cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)

    def detect_at(self, image: np.ndarray, x: float, y: float) -> List[Point]:
        if image is None:
            raise ValueError("请先加载图像")

        h, w = image.shape[:2]
        col, row = int(round(x)), int(round(y))
        if not (0 <= col < w and 0 <= row < h):
            logger.debug(f"点击位置 ({x:.0f}, {y:.0f}) 超出图像范围 {w}x{h}")
            return []

        mask = self._region_mask(image, row, col)
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return []

        contour = max(contours, key=cv2.contourArea)
        area = cv2.contourArea(contour)
        if area < self.min_area:
            logger.debug(f"轮廓面积过小: {area:.0f}px")
            return []
        if area > DETECT_MAX_AREA_RATIO * h * w:
            logger.debug("区域覆盖几乎整幅图像，视为背景")
            return []

        epsilon = self.epsilon_ratio * cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, epsilon, True)
        return [Point(float(px), float(py)) for px, py in approx[:, 0, :]]
