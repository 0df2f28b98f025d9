"""
标定模块 - 将像素距离换算为物理尺寸
"""
import logging
from typing import Dict, Optional

from models import Point
from errors import InvalidReference
from utils import ASSUMED_REFERENCE_PIXELS

logger = logging.getLogger(__name__)

AXES = ('length', 'girth')


class CalibrationResolver:
    """比例尺计算器（厘米/像素）

    未提供参考物像素长度时，退回到固定的假定基线
    （参考手势约跨 ``assumed_reference_pixels`` 像素），该值只是近似而非标定结果。
    """

    def __init__(self, assumed_reference_pixels: float = ASSUMED_REFERENCE_PIXELS):
        if assumed_reference_pixels <= 0:
            raise InvalidReference("假定基线像素数必须大于0")
        self.assumed_reference_pixels = float(assumed_reference_pixels)
        self._axis_scales: Dict[str, float] = {}

    def resolve_scale(self, reference_real_size: float,
                      reference_pixel_size: Optional[float] = None) -> float:
        """由参考物实际尺寸和像素长度计算比例尺

        Args:
            reference_real_size: 参考物实际尺寸(厘米)，必须大于0
            reference_pixel_size: 参考物像素长度，None 时使用假定基线

        Returns:
            float: 比例尺(厘米/像素)

        Raises:
            InvalidReference: 实际尺寸或像素长度不为正
        """
        if reference_real_size is None or reference_real_size <= 0:
            raise InvalidReference(f"参考物尺寸必须大于0: {reference_real_size}")
        if reference_pixel_size is None:
            reference_pixel_size = self.assumed_reference_pixels
            logger.debug(f"未提供参考像素长度，使用假定基线 {reference_pixel_size:.1f}px")
        if reference_pixel_size <= 0:
            raise InvalidReference(f"参考物像素长度必须大于0: {reference_pixel_size}")
        return float(reference_real_size) / float(reference_pixel_size)

    def resolve_from_points(self, reference_real_size: float, start: Point, end: Point) -> float:
        """由参考线段的两个端点计算比例尺"""
        return self.resolve_scale(reference_real_size, start.distance_to(end))

    @staticmethod
    def apply_scale(pixel_distance: float, scale_factor: float) -> float:
        """像素距离 → 物理尺寸（线性）"""
        if pixel_distance < 0:
            raise ValueError(f"像素距离不能为负: {pixel_distance}")
        return pixel_distance * scale_factor

    @staticmethod
    def apply_area_scale(pixel_area: float, scale_factor: float) -> float:
        """像素面积 → 物理面积"""
        if pixel_area < 0:
            raise ValueError(f"像素面积不能为负: {pixel_area}")
        return pixel_area * scale_factor * scale_factor

    # ===== 分轴比例尺 =====
    def set_reference(self, axis: str, reference_real_size: float,
                      reference_pixel_size: Optional[float] = None) -> float:
        """为指定轴设置比例尺；失败时保留原有比例尺"""
        self._check_axis(axis)
        scale = self.resolve_scale(reference_real_size, reference_pixel_size)
        self._axis_scales[axis] = scale
        return scale

    def scale_for(self, axis: str) -> Optional[float]:
        self._check_axis(axis)
        return self._axis_scales.get(axis)

    def reset_axis(self, axis: str) -> None:
        """新的参考点会使该轴已有的比例尺失效"""
        self._check_axis(axis)
        if self._axis_scales.pop(axis, None) is not None:
            logger.debug(f"{axis} 轴比例尺已重置")

    def reset(self) -> None:
        self._axis_scales = {}

    @staticmethod
    def _check_axis(axis: str) -> None:
        if axis not in AXES:
            raise ValueError(f"未知的测量轴: {axis}")
