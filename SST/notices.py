"""
提示模块 - 将结果或错误转换为界面提示
"""
from dataclasses import dataclass
from typing import List

from models import Achievement, Goal, GoalStatus, MeasurementSnapshot
from utils import BASE_UNIT, UNIT_LABELS, convert_unit
from errors import (
    MeasurementError, InvalidReference, InsufficientData, ToolStateConflict,
    StorageFailure, DetectionEmpty, DetectionBusy, ValidationError
)


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: str = 'default'   # 'default' / 'success' / 'warning' / 'destructive'


_ERROR_TITLES = [
    (ValidationError, "缺少必要信息", 'warning'),
    (InvalidReference, "参考物无效", 'warning'),
    (DetectionEmpty, "未检测到目标", 'warning'),
    (DetectionBusy, "正在检测", 'default'),
    (InsufficientData, "数据不足", 'default'),
    (ToolStateConflict, "操作无效", 'warning'),
    (StorageFailure, "保存失败", 'destructive'),
]


def notice_for(outcome, unit: str = BASE_UNIT) -> Notice:
    """把一次操作的结果（快照、目标、成就）或异常映射为提示，数值按 unit 显示"""
    if isinstance(outcome, BaseException):
        for error_type, title, variant in _ERROR_TITLES:
            if isinstance(outcome, error_type):
                return Notice(title, str(outcome), variant)
        if isinstance(outcome, MeasurementError):
            return Notice("错误", str(outcome), 'destructive')
        return Notice("未知错误", str(outcome) or type(outcome).__name__, 'destructive')

    if isinstance(outcome, MeasurementSnapshot):
        parts = []
        if outcome.length is not None:
            parts.append(f"长度 {convert_unit(outcome.length, BASE_UNIT, unit):.2f} {UNIT_LABELS[unit]}")
        if outcome.girth is not None:
            parts.append(f"周长 {convert_unit(outcome.girth, BASE_UNIT, unit):.2f} {UNIT_LABELS[unit]}")
        return Notice("测量已保存", "，".join(parts), 'success')

    if isinstance(outcome, Goal):
        if outcome.status is GoalStatus.COMPLETED:
            return Notice("目标达成", outcome.description, 'success')
        if outcome.status is GoalStatus.EXPIRED:
            return Notice("目标已过期", outcome.description, 'warning')
        return Notice("目标已创建", f"{outcome.description} ({outcome.progress * 100:.0f}%)", 'success')

    if isinstance(outcome, Achievement):
        return Notice("成就解锁", f"{outcome.title}: {outcome.description}", 'success')

    raise TypeError(f"无法生成提示: {type(outcome).__name__}")


def notices_for_unlocks(unlocked: List[Achievement]) -> List[Notice]:
    return [notice_for(a) for a in unlocked]
