"""
目标模块 - 目标创建与状态转移
"""
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from models import Goal, GoalType, GoalStatus, MeasurementSnapshot, sort_snapshots, parse_timestamp
from errors import ValidationError
from utils import clamp

logger = logging.getLogger(__name__)


def goal_progress(current_value: float, target_value: float) -> float:
    """progress = clamp(current / target, 0, 1)"""
    if target_value <= 0:
        return 0.0
    return clamp(current_value / target_value, 0.0, 1.0)


def create_goal(goal_type, target_value: float, target_date, description: str,
                current_value: float = 0.0, now: Optional[datetime] = None) -> Goal:
    """创建新目标

    Raises:
        ValidationError: 目标值不为正、截止日期不在未来或描述为空
    """
    now = now or datetime.now(timezone.utc)
    target_date = parse_timestamp(target_date)
    if not target_value or target_value <= 0:
        raise ValidationError(f"目标值必须大于0: {target_value}")
    if not description or not description.strip():
        raise ValidationError("请填写目标描述")
    if target_date <= now:
        raise ValidationError("目标日期必须晚于当前时间")

    goal = Goal(
        id=uuid.uuid4().hex,
        type=GoalType(goal_type),
        target_value=float(target_value),
        current_value=float(current_value),
        start_date=now,
        target_date=target_date,
        description=description.strip(),
    )
    return update_goal(goal, current_value, now)


def update_goal(goal: Goal, current_value: float, now: Optional[datetime] = None) -> Goal:
    """以新的当前值更新目标；已完成或已过期的目标保持不变

    只允许 Active → Completed（进度达到 1）或 Active → Expired（超过截止日期且未完成）。
    """
    if goal.status.is_terminal:
        return goal

    now = now or datetime.now(timezone.utc)
    progress = goal_progress(current_value, goal.target_value)
    status = GoalStatus.ACTIVE
    if progress >= 1.0:
        status = GoalStatus.COMPLETED
    elif now > goal.target_date:
        status = GoalStatus.EXPIRED

    if status is not GoalStatus.ACTIVE:
        logger.info(f"目标 {goal.id} 状态变更: {goal.status.value} -> {status.value}")
    return replace(goal, current_value=float(current_value), progress=progress, status=status)


def latest_value(snapshots: List[MeasurementSnapshot], goal_type: GoalType) -> Optional[float]:
    """最新一条含该轴数值的快照"""
    for snapshot in reversed(sort_snapshots(snapshots)):
        value = snapshot.value(goal_type.value)
        if value is not None:
            return value
    return None


def refresh_goals(goals: List[Goal], snapshots: List[MeasurementSnapshot],
                  now: Optional[datetime] = None) -> List[Goal]:
    """用最新快照刷新所有目标"""
    refreshed = []
    for goal in goals:
        value = latest_value(snapshots, goal.type)
        refreshed.append(update_goal(goal, goal.current_value if value is None else value, now))
    return refreshed
