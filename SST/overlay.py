"""
覆盖层绘制模块 - 由标注状态纯函数式地生成可视化结果
"""
from typing import Optional

import cv2
import numpy as np

from models import MeasurementType
from annotation_core import AnnotationState, AwaitingSecondPoint
from utils import CM_PER_INCH, convert_unit

# BGR
COLORS = {
    MeasurementType.LENGTH: (0, 0, 255),
    MeasurementType.GIRTH: (255, 0, 0),
    MeasurementType.AREA: (0, 165, 255),
    'reference': (0, 200, 0),
    'outline': (255, 0, 255),
    'pending': (0, 255, 255),
}


def render_overlay(image: np.ndarray, state: AnnotationState,
                   unit: str = 'cm', base: Optional[np.ndarray] = None) -> np.ndarray:
    """绘制标注覆盖层，不修改输入图像

    Args:
        image: 原始照片 (BGR)
        state: 当前标注状态
        unit: 标签显示单位 ('cm' / 'in')
        base: 可选的底图（例如已缩放的预览图），默认复制原图

    Returns:
        np.ndarray: 绘制后的图像
    """
    if image is None:
        raise ValueError("请先加载图像")

    vis_image = (base if base is not None else image).copy()

    if state.object_outline:
        pts = np.array([p.as_tuple() for p in state.object_outline], dtype=np.int32)
        cv2.polylines(vis_image, [pts.reshape(-1, 1, 2)], True, COLORS['outline'], 2)

    for m in state.manual_measurements:
        color = COLORS[m.type]
        if m.type is MeasurementType.AREA:
            center = m.center_point.as_tuple()
            cv2.circle(vis_image, center, int(round(m.radius or 0)), color, 2)
            cv2.circle(vis_image, center, 4, color, -1)
            area = m.values['area']
            if unit == 'in':
                area /= CM_PER_INCH ** 2
            text = f"A {area:.1f}{unit}^2"
            anchor = center
        else:
            start, end = m.start_point.as_tuple(), m.end_point.as_tuple()
            cv2.line(vis_image, start, end, color, 2)
            cv2.circle(vis_image, start, 4, color, -1)
            cv2.circle(vis_image, end, 4, color, -1)
            value = convert_unit(m.values[m.type.value], 'cm', unit)
            prefix = 'L' if m.type is MeasurementType.LENGTH else 'G'
            text = f"{prefix} {value:.1f}{unit}"
            anchor = ((start[0] + end[0]) // 2, (start[1] + end[1]) // 2)
        cv2.putText(vis_image, text, (anchor[0] + 5, anchor[1] - 5),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)

    for label, point in (('L', state.reference_points.length), ('G', state.reference_points.girth)):
        if point is None:
            continue
        center = point.as_tuple()
        cv2.circle(vis_image, center, 6, COLORS['reference'], 2)
        cv2.putText(vis_image, f"REF {label}", (center[0] + 8, center[1] - 8),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, COLORS['reference'], 1)

    if isinstance(state.tool_state, AwaitingSecondPoint):
        cv2.circle(vis_image, state.tool_state.start_point.as_tuple(), 5, COLORS['pending'], -1)

    return vis_image
