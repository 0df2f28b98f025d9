"""
标注核心模块 - 单张照片上的指针标注状态机
"""
import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from models import (
    ToolType, MeasurementType, Point, ReferencePoints,
    ManualMeasurement, MeasurementSnapshot
)
from calibration import CalibrationResolver
from detection import OutlineDetector, NullOutlineDetector
from errors import (
    ToolStateConflict, DetectionEmpty, DetectionBusy, ValidationError
)
from utils import BASE_UNIT, DEFAULT_REFERENCE_SIZE_CM, convert_unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    """没有进行中的手势"""


@dataclass(frozen=True)
class AwaitingSecondPoint:
    """两点手势已记录起点，等待第二次点击"""
    tool: ToolType
    start_point: Point


ToolState = Union[Idle, AwaitingSecondPoint]


@dataclass(frozen=True)
class AnnotationState:
    """标注状态快照，覆盖层完全由它决定"""
    tool_state: ToolState = field(default_factory=Idle)
    manual_measurements: Tuple[ManualMeasurement, ...] = ()
    reference_points: ReferencePoints = field(default_factory=ReferencePoints)
    object_outline: Tuple[Point, ...] = ()

    @property
    def is_idle(self) -> bool:
        return isinstance(self.tool_state, Idle)

    @property
    def is_empty(self) -> bool:
        return (self.is_idle and not self.manual_measurements
                and self.reference_points.is_empty and not self.object_outline)

    def latest_value(self, kind: MeasurementType) -> Optional[float]:
        """某类手动测量的最新数值"""
        for m in reversed(self.manual_measurements):
            if m.type is kind:
                return m.values.get(kind.value)
        return None


class AnnotationEngine:
    """标注引擎 - 管理一张照片的测量、参考点和目标轮廓

    状态只能通过下列方法转移；每次修改都会以新的 AnnotationState 通知监听者。
    本类不做任何持久化，保存需显式调用 save()。
    """

    def __init__(self, calibration: Optional[CalibrationResolver] = None,
                 detector: Optional[OutlineDetector] = None,
                 reference_size: float = DEFAULT_REFERENCE_SIZE_CM):
        self.calibration = calibration or CalibrationResolver()
        self.detector = detector or NullOutlineDetector()
        self.reference_size = reference_size
        self.image: Optional[np.ndarray] = None
        self._state = AnnotationState()
        self._listeners: List[Callable[[AnnotationState], None]] = []
        self._detecting = False

    @classmethod
    def from_settings(cls, settings, detector: Optional[OutlineDetector] = None) -> 'AnnotationEngine':
        calibration = CalibrationResolver(settings.assumed_reference_pixels)
        return cls(calibration, detector, reference_size=settings.reference_size_cm)

    @property
    def state(self) -> AnnotationState:
        return self._state

    @property
    def tool_state(self) -> ToolState:
        return self._state.tool_state

    def add_listener(self, listener: Callable[[AnnotationState], None]) -> None:
        """注册状态变更回调（通常用于重绘覆盖层）"""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[AnnotationState], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, state: AnnotationState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def load_image(self, image: np.ndarray) -> None:
        """切换照片，旧照片的标注全部丢弃"""
        self.image = image
        self.calibration.reset()
        self._set_state(AnnotationState())

    # ===== 指针事件 =====
    def click(self, tool: ToolType, point: Point) -> Optional[ManualMeasurement]:
        """处理一次点击；两点手势完成时返回新的测量记录"""
        tool = ToolType(tool)
        if tool.is_two_click:
            current = self.tool_state
            if isinstance(current, AwaitingSecondPoint) and current.tool is tool:
                return self.complete(point)
            self.begin(tool, point)
            return None
        if tool is ToolType.HIGHLIGHT:
            self.highlight(point)
        else:
            self.place_reference(point)
        return None

    def begin(self, tool: ToolType, point: Point) -> None:
        """两点手势第一次点击：Idle → AwaitingSecondPoint"""
        tool = ToolType(tool)
        if not tool.is_two_click:
            raise ValueError(f"{tool.value} 不是两点工具")
        current = self.tool_state
        if isinstance(current, AwaitingSecondPoint):
            logger.debug(f"放弃未完成的 {current.tool.value} 手势")
        self._set_state(replace(self._state, tool_state=AwaitingSecondPoint(tool, point)))

    def complete(self, point: Point) -> ManualMeasurement:
        """两点手势第二次点击：AwaitingSecondPoint → Idle"""
        current = self.tool_state
        if not isinstance(current, AwaitingSecondPoint):
            raise ToolStateConflict("手势完成时没有对应的起点")

        measurement = self._measure(current.tool, current.start_point, point)
        self._set_state(replace(
            self._state,
            tool_state=Idle(),
            manual_measurements=self._state.manual_measurements + (measurement,),
        ))
        return measurement

    def cancel(self) -> None:
        """放弃进行中的手势"""
        if not self._state.is_idle:
            self._set_state(replace(self._state, tool_state=Idle()))

    def highlight(self, point: Point) -> Tuple[Point, ...]:
        """调用轮廓检测，结果替换当前目标轮廓"""
        if self.image is None:
            raise ValueError("请先加载图像")
        if self._detecting:
            raise DetectionBusy("上一次轮廓检测尚未完成")

        self._detecting = True
        try:
            outline = self.detector.detect_at(self.image, point.x, point.y)
        finally:
            self._detecting = False

        if not outline:
            raise DetectionEmpty(point.x, point.y)

        outline = tuple(outline)
        self._set_state(replace(self._state, tool_state=Idle(), object_outline=outline))
        logger.info(f"检测到目标轮廓，顶点数: {len(outline)}")
        return outline

    def place_reference(self, point: Point) -> ReferencePoints:
        """参考点循环：无 → 长度 → 长度+周长 → 仅长度（新点）"""
        current = self._state.reference_points
        if current.length is None:
            updated = ReferencePoints(length=point)
            self.calibration.reset_axis('length')
        elif current.girth is None:
            updated = ReferencePoints(length=current.length, girth=point)
            self.calibration.reset_axis('girth')
        else:
            updated = ReferencePoints(length=point)
            self.calibration.reset_axis('length')
            self.calibration.reset_axis('girth')

        self._set_state(replace(self._state, tool_state=Idle(), reference_points=updated))
        return updated

    def calibrate(self, axis: str, start: Point, end: Point,
                  reference_size: Optional[float] = None) -> float:
        """用在参考物上绘制的线段为指定轴标定比例尺"""
        size = self.reference_size if reference_size is None else reference_size
        scale = self.calibration.set_reference(axis, size, start.distance_to(end))
        logger.info(f"{axis} 轴比例尺: {scale:.5f} cm/pixel")
        return scale

    def clear(self) -> None:
        """一次性清空所有标注状态"""
        self.calibration.reset()
        self._set_state(AnnotationState())

    # ===== 测量计算 =====
    def _scale_for(self, axis: str) -> float:
        scale = self.calibration.scale_for(axis)
        if scale is None:
            scale = self.calibration.resolve_scale(self.reference_size)
        return scale

    def _measure(self, tool: ToolType, start: Point, end: Point) -> ManualMeasurement:
        pixel_distance = start.distance_to(end)

        if tool is ToolType.AREA:
            scale = self._scale_for('length')
            pixel_area = math.pi * pixel_distance ** 2
            area = self.calibration.apply_area_scale(pixel_area, scale)
            return ManualMeasurement(
                type=MeasurementType.AREA,
                start_point=start,
                end_point=end,
                center_point=start,
                radius=pixel_distance,
                values={'area': area},
                pixel_distance=pixel_distance,
            )

        kind = MeasurementType(tool.value)
        value = self.calibration.apply_scale(pixel_distance, self._scale_for(kind.value))
        return ManualMeasurement(
            type=kind,
            start_point=start,
            end_point=end,
            values={kind.value: value},
            pixel_distance=pixel_distance,
        )

    # ===== 保存 =====
    def build_snapshot(self, length: Optional[float] = None, girth: Optional[float] = None,
                       unit: str = BASE_UNIT, confidence: Optional[float] = None,
                       snapshot_id: Optional[str] = None,
                       now: Optional[datetime] = None) -> MeasurementSnapshot:
        """由当前标注生成快照；未显式给出的数值取最新的手动测量

        Raises:
            ValidationError: 缺少长度和周长，或数值不为正
        """
        if length is None:
            length = self._state.latest_value(MeasurementType.LENGTH)
        elif unit != BASE_UNIT:
            length = convert_unit(length, unit, BASE_UNIT)
        if girth is None:
            girth = self._state.latest_value(MeasurementType.GIRTH)
        elif unit != BASE_UNIT:
            girth = convert_unit(girth, unit, BASE_UNIT)

        if length is None and girth is None:
            raise ValidationError("保存前至少需要长度或周长之一")
        for name, value in (('length', length), ('girth', girth)):
            if value is not None and not (math.isfinite(value) and value > 0):
                raise ValidationError(f"{name} 必须为正数: {value}")
        if confidence is not None and not 0.0 <= confidence <= 1.0:
            raise ValidationError(f"置信度必须在 [0, 1] 区间: {confidence}")

        state = self._state
        return MeasurementSnapshot(
            id=snapshot_id or uuid.uuid4().hex,
            timestamp=now or datetime.now(timezone.utc),
            length=length,
            girth=girth,
            confidence=confidence,
            reference_object_detected=not state.reference_points.is_empty,
            unit=BASE_UNIT,
            reference_size=self.reference_size,
            manual_measurements=state.manual_measurements,
            object_outline=state.object_outline,
            reference_points=state.reference_points,
        )

    def save(self, store, **kwargs) -> MeasurementSnapshot:
        """校验并保存快照，成功后清空工作状态；校验失败时不写入任何数据"""
        snapshot = self.build_snapshot(**kwargs)
        record_id = store.save(snapshot)
        if record_id != snapshot.id:
            snapshot = replace(snapshot, id=record_id)
        logger.info(f"快照已保存: {snapshot.id}")
        self.clear()
        return snapshot
