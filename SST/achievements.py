"""
成就模块 - 单调的阈值监视器
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from models import Achievement, Goal, MeasurementSnapshot, ProgressSummary, sort_snapshots
from utils import (
    WEEK_STREAK_DAYS, MONTH_STREAK_DAYS, LENGTH_GAIN_TARGET_IN, GIRTH_GAIN_TARGET_IN,
    to_cm, clamp
)

logger = logging.getLogger(__name__)


def default_achievements() -> List[Achievement]:
    """默认成就列表（增益阈值以厘米存储）"""
    return [
        Achievement('first-measurement', "First Steps", "记录第一次测量",
                    'measurement', max_progress=1),
        Achievement('week-streak', "Week Warrior", "连续 7 次记录增长",
                    'consistency', max_progress=WEEK_STREAK_DAYS),
        Achievement('month-streak', "Monthly Master", "连续 30 次记录增长",
                    'consistency', max_progress=MONTH_STREAK_DAYS),
        Achievement('length-gain', "Length Champion", f"长度增加 {LENGTH_GAIN_TARGET_IN} 英寸",
                    'milestone', max_progress=to_cm(LENGTH_GAIN_TARGET_IN)),
        Achievement('girth-gain', "Girth Guru", f"周长增加 {GIRTH_GAIN_TARGET_IN} 英寸",
                    'milestone', max_progress=to_cm(GIRTH_GAIN_TARGET_IN)),
        Achievement('goal-setter', "Goal Setter", "设定第一个目标",
                    'milestone', max_progress=1),
    ]


@dataclass(frozen=True)
class EvaluationContext:
    summary: ProgressSummary
    goals: Tuple[Goal, ...]
    snapshots: Tuple[MeasurementSnapshot, ...]


Rule = Callable[[EvaluationContext, Achievement], Tuple[float, bool]]


def _count_rule(count: int, achievement: Achievement) -> Tuple[float, bool]:
    return min(achievement.max_progress, count), count >= achievement.max_progress


def _first_measurement(ctx: EvaluationContext, achievement: Achievement) -> Tuple[float, bool]:
    measured = sum(1 for s in ctx.snapshots if s.has_measurements)
    return _count_rule(measured, achievement)


def _streak(ctx: EvaluationContext, achievement: Achievement) -> Tuple[float, bool]:
    return _count_rule(ctx.summary.current_streak, achievement)


def _goal_setter(ctx: EvaluationContext, achievement: Achievement) -> Tuple[float, bool]:
    return _count_rule(len(ctx.goals), achievement)


def _gain_rule(axis: str) -> Rule:
    def rule(ctx: EvaluationContext, achievement: Achievement) -> Tuple[float, bool]:
        values = [s.value(axis) for s in ctx.snapshots if s.value(axis) is not None]
        if len(values) < 2:
            return 0.0, False
        gain = values[-1] - values[0]
        return clamp(gain, 0.0, achievement.max_progress), gain >= achievement.max_progress
    return rule


RULES: Dict[str, Rule] = {
    'first-measurement': _first_measurement,
    'week-streak': _streak,
    'month-streak': _streak,
    'length-gain': _gain_rule('length'),
    'girth-gain': _gain_rule('girth'),
    'goal-setter': _goal_setter,
}


class AchievementEvaluator:
    """按规则更新成就进度与解锁状态

    解锁状态单调：已解锁的成就即使重算后不再满足阈值（例如历史被编辑），也不会被改回未解锁。
    """

    def __init__(self, rules: Optional[Dict[str, Rule]] = None):
        self.rules = dict(RULES if rules is None else rules)

    def evaluate(self, achievements: List[Achievement], summary: ProgressSummary,
                 goals: List[Goal], snapshots: List[MeasurementSnapshot],
                 now: Optional[datetime] = None) -> List[Achievement]:
        now = now or datetime.now(timezone.utc)
        ctx = EvaluationContext(summary, tuple(goals), tuple(sort_snapshots(snapshots)))

        updated = []
        for achievement in achievements:
            rule = self.rules.get(achievement.id)
            if rule is None:
                updated.append(achievement)
                continue

            progress, unlocked = rule(ctx, achievement)
            updated.append(self._apply(achievement, progress, unlocked, now))
        return updated

    @staticmethod
    def _apply(achievement: Achievement, progress: float, unlocked: bool,
               now: datetime) -> Achievement:
        if achievement.unlocked:
            if not unlocked:
                logger.debug(f"成就 {achievement.id} 重算后未达阈值，保持已解锁")
            return achievement.with_progress(progress)

        result = achievement.with_progress(progress)
        if unlocked:
            logger.info(f"成就解锁: {achievement.id}")
            result = replace(result, unlocked=True, unlocked_date=now)
        return result

    @staticmethod
    def newly_unlocked(before: List[Achievement], after: List[Achievement]) -> List[Achievement]:
        """本次评估中新解锁的成就"""
        previous = {a.id: a.unlocked for a in before}
        return [a for a in after if a.unlocked and not previous.get(a.id, False)]
