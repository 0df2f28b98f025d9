"""
数据模型模块 - 定义所有数据类和数据结构
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ToolType(str, Enum):
    """标注工具"""
    LENGTH = 'length'
    GIRTH = 'girth'
    AREA = 'area'
    HIGHLIGHT = 'highlight'
    REFERENCE = 'reference'

    @property
    def is_two_click(self) -> bool:
        return self in (ToolType.LENGTH, ToolType.GIRTH, ToolType.AREA)


class MeasurementType(str, Enum):
    """手动测量类型"""
    LENGTH = 'length'
    GIRTH = 'girth'
    AREA = 'area'


class GoalType(str, Enum):
    LENGTH = 'length'
    GIRTH = 'girth'


class GoalStatus(str, Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    EXPIRED = 'expired'

    @property
    def is_terminal(self) -> bool:
        return self is not GoalStatus.ACTIVE


def parse_timestamp(value) -> datetime:
    """解析 ISO-8601 时间，无时区信息时按 UTC 处理"""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(value: datetime) -> str:
    return parse_timestamp(value).isoformat()


@dataclass(frozen=True)
class Point:
    """图像像素坐标（左上角为原点，y 向下）"""
    x: float
    y: float

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def as_tuple(self) -> Tuple[int, int]:
        return int(round(self.x)), int(round(self.y))

    def to_dict(self) -> dict:
        return {'x': float(self.x), 'y': float(self.y)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Point':
        return cls(x=float(data['x']), y=float(data['y']))


@dataclass(frozen=True)
class ReferencePoints:
    """参考物位置，每个轴最多一个点"""
    length: Optional[Point] = None
    girth: Optional[Point] = None

    @property
    def is_empty(self) -> bool:
        return self.length is None and self.girth is None

    def to_dict(self) -> dict:
        data = {}
        if self.length is not None:
            data['length'] = self.length.to_dict()
        if self.girth is not None:
            data['girth'] = self.girth.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ReferencePoints':
        data = data or {}
        return cls(
            length=Point.from_dict(data['length']) if data.get('length') else None,
            girth=Point.from_dict(data['girth']) if data.get('girth') else None,
        )


@dataclass(frozen=True)
class ManualMeasurement:
    """一次完整两点手势产生的测量记录，创建后不可修改"""
    type: MeasurementType
    start_point: Point
    end_point: Optional[Point] = None
    center_point: Optional[Point] = None
    radius: Optional[float] = None
    values: Dict[str, float] = field(default_factory=dict)
    pixel_distance: float = 0.0

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'startPoint': self.start_point.to_dict(),
            'endPoint': self.end_point.to_dict() if self.end_point else None,
            'centerPoint': self.center_point.to_dict() if self.center_point else None,
            'radius': self.radius,
            'measurements': dict(self.values),
            'pixelDistance': self.pixel_distance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ManualMeasurement':
        return cls(
            type=MeasurementType(data['type']),
            start_point=Point.from_dict(data['startPoint']),
            end_point=Point.from_dict(data['endPoint']) if data.get('endPoint') else None,
            center_point=Point.from_dict(data['centerPoint']) if data.get('centerPoint') else None,
            radius=data.get('radius'),
            values={k: float(v) for k, v in (data.get('measurements') or {}).items()},
            pixel_distance=float(data.get('pixelDistance', 0.0)),
        )


@dataclass(frozen=True)
class MeasurementSnapshot:
    """持久化的测量快照，统计分析的基本单位（长度单位：厘米）"""
    id: str
    timestamp: datetime
    length: Optional[float] = None
    girth: Optional[float] = None
    confidence: Optional[float] = None
    reference_object_detected: bool = False
    unit: str = 'cm'
    reference_size: Optional[float] = None
    manual_measurements: Tuple[ManualMeasurement, ...] = ()
    object_outline: Tuple[Point, ...] = ()
    reference_points: ReferencePoints = field(default_factory=ReferencePoints)

    def __post_init__(self):
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"置信度必须在 [0, 1] 区间: {self.confidence}")
        object.__setattr__(self, 'timestamp', parse_timestamp(self.timestamp))

    @property
    def has_measurements(self) -> bool:
        return self.length is not None or self.girth is not None

    def value(self, axis: str) -> Optional[float]:
        """按轴名取值 ('length' / 'girth')"""
        if axis == 'length':
            return self.length
        if axis == 'girth':
            return self.girth
        raise ValueError(f"未知的测量轴: {axis}")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': format_timestamp(self.timestamp),
            'length': self.length,
            'girth': self.girth,
            'confidence': self.confidence,
            'referenceObjectDetected': self.reference_object_detected,
            'unit': self.unit,
            'referenceMeasurement': self.reference_size,
            'manualMeasurements': [m.to_dict() for m in self.manual_measurements],
            'objectOutline': [p.to_dict() for p in self.object_outline],
            'referencePoints': self.reference_points.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'MeasurementSnapshot':
        return cls(
            id=str(data['id']),
            timestamp=parse_timestamp(data['timestamp']),
            length=_optional_float(data.get('length')),
            girth=_optional_float(data.get('girth')),
            confidence=_optional_float(data.get('confidence')),
            reference_object_detected=bool(data.get('referenceObjectDetected', False)),
            unit=data.get('unit') or 'cm',
            reference_size=_optional_float(data.get('referenceMeasurement')),
            manual_measurements=tuple(
                ManualMeasurement.from_dict(m) for m in data.get('manualMeasurements') or []
            ),
            object_outline=tuple(Point.from_dict(p) for p in data.get('objectOutline') or []),
            reference_points=ReferencePoints.from_dict(data.get('referencePoints')),
        )


@dataclass(frozen=True)
class Goal:
    """目标：progress = clamp(current/target, 0, 1)"""
    id: str
    type: GoalType
    target_value: float
    current_value: float
    start_date: datetime
    target_date: datetime
    status: GoalStatus = GoalStatus.ACTIVE
    progress: float = 0.0
    description: str = ''

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.type.value,
            'targetValue': self.target_value,
            'currentValue': self.current_value,
            'startDate': format_timestamp(self.start_date),
            'targetDate': format_timestamp(self.target_date),
            'status': self.status.value,
            'progress': self.progress,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Goal':
        return cls(
            id=str(data['id']),
            type=GoalType(data['type']),
            target_value=float(data['targetValue']),
            current_value=float(data.get('currentValue', 0.0)),
            start_date=parse_timestamp(data['startDate']),
            target_date=parse_timestamp(data['targetDate']),
            status=GoalStatus(data.get('status', 'active')),
            progress=float(data.get('progress', 0.0)),
            description=data.get('description', ''),
        )


@dataclass(frozen=True)
class Achievement:
    """成就：unlocked 单调，unlocked_date 仅在解锁时写入一次"""
    id: str
    title: str = ''
    description: str = ''
    category: str = 'measurement'
    progress: float = 0.0
    max_progress: float = 1.0
    unlocked: bool = False
    unlocked_date: Optional[datetime] = None

    def with_progress(self, progress: float) -> 'Achievement':
        return replace(self, progress=max(0.0, min(self.max_progress, progress)))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'progress': self.progress,
            'maxProgress': self.max_progress,
            'unlocked': self.unlocked,
            'unlockedDate': format_timestamp(self.unlocked_date) if self.unlocked_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Achievement':
        unlocked_date = data.get('unlockedDate')
        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            description=data.get('description', ''),
            category=data.get('category', 'measurement'),
            progress=float(data.get('progress', 0.0)),
            max_progress=float(data.get('maxProgress', 1.0)),
            unlocked=bool(data.get('unlocked', False)),
            unlocked_date=parse_timestamp(unlocked_date) if unlocked_date else None,
        )


@dataclass(frozen=True)
class AnalyticsMetrics:
    """快照序列的派生指标，不单独持久化"""
    average_growth: float = 0.0
    consistency: float = 0.0
    momentum: float = 0.0
    volatility: float = 0.0
    trend_strength: float = 0.0


@dataclass(frozen=True)
class ProgressSummary:
    """统计汇总结果"""
    total_snapshots: int = 0
    total_measurements: int = 0
    growth_steps: int = 0
    average_length_growth: float = 0.0
    average_girth_growth: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    days_since_first: int = 0
    growth_rates: Tuple[float, ...] = ()
    metrics: AnalyticsMetrics = field(default_factory=AnalyticsMetrics)

    @property
    def average_growth(self) -> float:
        return self.metrics.average_growth

    @property
    def consistency(self) -> float:
        return self.metrics.consistency


@dataclass(frozen=True)
class ProjectionStep:
    """单周预测结果"""
    week: int
    predicted_growth: float
    predicted_value: float
    confidence: float
    range_low: float
    range_high: float

    @property
    def range(self) -> Tuple[float, float]:
        return self.range_low, self.range_high


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    description: str
    confidence: float


def _optional_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


def sort_snapshots(snapshots: List[MeasurementSnapshot]) -> List[MeasurementSnapshot]:
    """按时间升序排序（稳定排序）"""
    return sorted(snapshots, key=lambda s: s.timestamp)
