"""
进度跟踪模块 - 组合存储、统计、目标与成就
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from models import (
    Achievement, Goal, GoalType, Insight, MeasurementSnapshot, ProgressSummary,
    ProjectionStep, sort_snapshots
)
from settings import Settings, load_settings, save_settings
from storage import RecordStore, KeyValueStore
from analytics import AnalyticsAggregator, filter_by_range, derive_insights
from projection import PredictiveProjector
from goals import create_goal, refresh_goals, latest_value
from achievements import AchievementEvaluator, default_achievements
from annotation_core import AnnotationEngine
from notices import Notice, notices_for_unlocks
from detection import OutlineDetector

logger = logging.getLogger(__name__)

GOALS_KEY = 'goals'
ACHIEVEMENTS_KEY = 'achievements'


@dataclass
class ProgressReport:
    """一次刷新的结果"""
    summary: ProgressSummary
    goals: List[Goal] = field(default_factory=list)
    achievements: List[Achievement] = field(default_factory=list)
    unlocked: List[Achievement] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)

    def notices(self) -> List[Notice]:
        """本次刷新中新解锁成就的提示"""
        return notices_for_unlocks(self.unlocked)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressTracker:
    """进度跟踪器

    负责从存储读取快照，保存标注结果，并在每次变更后重新计算统计、目标与成就。
    存储调用不做串行化，并发写入以最后一次为准。
    """

    def __init__(self, record_store: RecordStore, kv_store: KeyValueStore,
                 settings: Optional[Settings] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.record_store = record_store
        self.kv_store = kv_store
        self.settings = settings or load_settings(kv_store)
        self.clock = clock or _utc_now
        self.aggregator = AnalyticsAggregator()
        self.projector = PredictiveProjector(self.aggregator)
        self.evaluator = AchievementEvaluator()

    # ===== 快照 =====
    def snapshots(self, range_key: Optional[str] = None) -> List[MeasurementSnapshot]:
        """读取全部快照（按时间升序），可按时间范围筛选"""
        records = sort_snapshots(self.record_store.get_all())
        if range_key is not None:
            records = filter_by_range(records, range_key, self.clock())
        return records

    def new_engine(self, detector: Optional[OutlineDetector] = None) -> AnnotationEngine:
        return AnnotationEngine.from_settings(self.settings, detector)

    def save_from_engine(self, engine: AnnotationEngine, **kwargs) -> MeasurementSnapshot:
        """保存标注引擎当前结果；数值单位默认为当前显示单位"""
        kwargs.setdefault('unit', self.settings.display_unit)
        kwargs.setdefault('now', self.clock())
        return engine.save(self.record_store, **kwargs)

    def delete_snapshot(self, snapshot_id: str) -> None:
        self.record_store.delete(snapshot_id)
        logger.info(f"快照已删除: {snapshot_id}")

    # ===== 目标 =====
    def goals(self) -> List[Goal]:
        return [Goal.from_dict(d) for d in (self.kv_store.get(GOALS_KEY) or [])]

    def _save_goals(self, goals: List[Goal]) -> None:
        self.kv_store.set(GOALS_KEY, [g.to_dict() for g in goals])

    def create_goal(self, goal_type, target_value: float, target_date,
                    description: str) -> Goal:
        """新建目标，当前值取最新快照"""
        goal_type = GoalType(goal_type)
        current = latest_value(self.record_store.get_all(), goal_type) or 0.0
        goal = create_goal(goal_type, target_value, target_date, description,
                           current_value=current, now=self.clock())
        self._save_goals(self.goals() + [goal])
        logger.info(f"目标已创建: {goal.id} ({goal_type.value} -> {target_value})")
        return goal

    # ===== 成就 =====
    def achievements(self) -> List[Achievement]:
        """已保存的成就，缺失的默认成就按初始状态补齐"""
        stored = [Achievement.from_dict(d) for d in (self.kv_store.get(ACHIEVEMENTS_KEY) or [])]
        known = {a.id for a in stored}
        return stored + [a for a in default_achievements() if a.id not in known]

    # ===== 刷新 =====
    def refresh(self) -> ProgressReport:
        """重新计算统计并持久化目标与成就"""
        now = self.clock()
        snapshots = self.snapshots()
        summary = self.aggregator.aggregate(snapshots, now)

        goals = refresh_goals(self.goals(), snapshots, now)
        self._save_goals(goals)

        before = self.achievements()
        after = self.evaluator.evaluate(before, summary, goals, snapshots, now)
        self.kv_store.set(ACHIEVEMENTS_KEY, [a.to_dict() for a in after])
        unlocked = self.evaluator.newly_unlocked(before, after)

        active = [g.progress for g in goals if not g.status.is_terminal]
        insights = derive_insights(summary.metrics, max(active) if active else None)

        logger.info(f"刷新完成: {summary.total_snapshots} 条快照, 新解锁 {len(unlocked)} 个成就")
        return ProgressReport(summary, goals, after, unlocked, insights)

    def projection(self, axis: str = 'length') -> List[ProjectionStep]:
        return self.projector.project(self.snapshots(), axis)

    # ===== 设置 =====
    def update_settings(self, **changes) -> Settings:
        self.settings = self.settings.updated(**changes)
        save_settings(self.kv_store, self.settings)
        return self.settings
