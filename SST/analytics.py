"""
统计分析模块 - 由快照序列计算增长、连续记录、一致性等指标
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np

from models import (
    MeasurementSnapshot, AnalyticsMetrics, ProgressSummary, Insight, sort_snapshots
)
from utils import (
    MOMENTUM_WINDOW, SECONDS_PER_DAY, TIME_RANGES,
    INSIGHT_GROWTH_THRESHOLD, INSIGHT_CONSISTENCY_THRESHOLD, INSIGHT_GOAL_PROGRESS_THRESHOLD,
    convert_unit, clamp, finite_or_zero
)

logger = logging.getLogger(__name__)

AXES = ('length', 'girth')


def _axis_delta(prev: MeasurementSnapshot, curr: MeasurementSnapshot, axis: str) -> Optional[float]:
    """相邻两条快照在某轴上的差值，任一侧缺失时返回 None"""
    a, b = prev.value(axis), curr.value(axis)
    if a is None or b is None:
        return None
    return b - a


def _mean(values: List[float]) -> float:
    return float(np.mean(values)) if values else 0.0


class AnalyticsAggregator:
    """快照序列统计器

    输入顺序任意，内部按时间升序处理；空序列或退化输入返回全 0 结果而不报错。
    相同输入多次计算结果一致。
    """

    def __init__(self, momentum_window: int = MOMENTUM_WINDOW):
        self.momentum_window = momentum_window

    def aggregate(self, snapshots: List[MeasurementSnapshot],
                  now: Optional[datetime] = None) -> ProgressSummary:
        """计算完整统计汇总"""
        if not snapshots:
            return ProgressSummary()

        ordered = sort_snapshots(snapshots)
        now = now or datetime.now(timezone.utc)

        length_growths: List[float] = []
        girth_growths: List[float] = []
        growth_steps = 0
        streak = 0
        longest_streak = 0

        for prev, curr in zip(ordered, ordered[1:]):
            # 任一侧没有测量值的记录对直接跳过，不增加也不打断连续记录
            if not (prev.has_measurements and curr.has_measurements):
                continue
            length_growth = _axis_delta(prev, curr, 'length')
            girth_growth = _axis_delta(prev, curr, 'girth')

            # 任一轴增长即计为增长步，即使另一轴回落
            is_growth = ((length_growth is not None and length_growth > 0) or
                         (girth_growth is not None and girth_growth > 0))
            if is_growth:
                growth_steps += 1
                if length_growth is not None:
                    length_growths.append(length_growth)
                if girth_growth is not None:
                    girth_growths.append(girth_growth)
                streak += 1
                longest_streak = max(longest_streak, streak)
            else:
                streak = 0

        average_length_growth = _mean(length_growths)
        average_girth_growth = _mean(girth_growths)
        axis_averages = [avg for avg, samples in ((average_length_growth, length_growths),
                                                  (average_girth_growth, girth_growths)) if samples]
        average_growth = _mean(axis_averages)

        total_measurements = sum(1 for s in ordered if s.has_measurements)
        days_since_first = self.days_since(ordered[0].timestamp, now)
        growth_rates = self.growth_rates(ordered)

        metrics = AnalyticsMetrics(
            average_growth=finite_or_zero(average_growth),
            consistency=self.consistency(total_measurements, days_since_first),
            momentum=self.momentum(growth_rates),
            volatility=self.volatility(growth_rates),
            trend_strength=self.trend_strength(growth_rates),
        )

        return ProgressSummary(
            total_snapshots=len(ordered),
            total_measurements=total_measurements,
            growth_steps=growth_steps,
            average_length_growth=finite_or_zero(average_length_growth),
            average_girth_growth=finite_or_zero(average_girth_growth),
            current_streak=streak,
            longest_streak=longest_streak,
            days_since_first=days_since_first,
            growth_rates=tuple(growth_rates),
            metrics=metrics,
        )

    def compute_metrics(self, snapshots: List[MeasurementSnapshot],
                        now: Optional[datetime] = None) -> AnalyticsMetrics:
        return self.aggregate(snapshots, now).metrics

    # ===== 单项指标 =====
    @staticmethod
    def days_since(first: datetime, now: datetime) -> int:
        """距第一条快照的天数（向上取整），不会为负"""
        elapsed = (now - first).total_seconds() / SECONDS_PER_DAY
        return max(0, math.ceil(elapsed))

    @staticmethod
    def consistency(total_measurements: int, days_since_first: int) -> float:
        """测量频率与经过天数之比，上限 100；天数为 0 时定义为 0"""
        if days_since_first <= 0:
            return 0.0
        return clamp(total_measurements / days_since_first * 100.0, 0.0, 100.0)

    @staticmethod
    def growth_rates(ordered: List[MeasurementSnapshot]) -> List[float]:
        """相邻快照的增长率序列(%)，取各有效轴的平均"""
        rates = []
        for prev, curr in zip(ordered, ordered[1:]):
            pair_rates = []
            for axis in AXES:
                a, b = prev.value(axis), curr.value(axis)
                if a is None or b is None or a == 0:
                    continue
                pair_rates.append((b - a) / a * 100.0)
            if pair_rates:
                rates.append(_mean(pair_rates))
        return rates

    def momentum(self, growth_rates: List[float]) -> float:
        """最近 N 个增长率的平均值，不足 N 个时取现有值"""
        return finite_or_zero(_mean(growth_rates[-self.momentum_window:]))

    @staticmethod
    def volatility(growth_rates: List[float]) -> float:
        """增长率的总体标准差"""
        if not growth_rates:
            return 0.0
        return finite_or_zero(float(np.std(growth_rates)))

    @staticmethod
    def trend_strength(growth_rates: List[float]) -> float:
        if not growth_rates:
            return 0.0
        return finite_or_zero(abs(sum(growth_rates)) / len(growth_rates))


# ===== 展示辅助 =====
def filter_by_range(snapshots: List[MeasurementSnapshot], range_key: str,
                    now: Optional[datetime] = None) -> List[MeasurementSnapshot]:
    """按时间范围 ('7d' / '30d' / '90d' / '1y' / 'all') 筛选快照"""
    if range_key not in TIME_RANGES:
        raise ValueError(f"未知的时间范围: {range_key}")
    days = TIME_RANGES[range_key]
    if days is None:
        return list(snapshots)
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    return [s for s in snapshots if s.timestamp >= cutoff]


def build_chart_data(snapshots: List[MeasurementSnapshot], unit: str = 'cm') -> List[Dict]:
    """折线图数据：日期与各轴数值（显示单位）"""
    data = []
    for s in sort_snapshots(snapshots):
        data.append({
            'date': s.timestamp.date().isoformat(),
            'length': convert_unit(s.length, 'cm', unit) if s.length is not None else None,
            'girth': convert_unit(s.girth, 'cm', unit) if s.girth is not None else None,
        })
    return data


def build_consistency_data(snapshots: List[MeasurementSnapshot]) -> List[Dict]:
    """相邻快照的绝对变化量之和"""
    ordered = sort_snapshots(snapshots)
    deltas = []
    for prev, curr in zip(ordered, ordered[1:]):
        delta = 0.0
        for axis in AXES:
            d = _axis_delta(prev, curr, axis)
            if d is not None:
                delta += abs(d)
        deltas.append({'date': curr.timestamp.date().isoformat(), 'delta': round(delta, 3)})
    return deltas


def get_statistics(snapshots: List[MeasurementSnapshot], axis: str = 'length') -> Dict:
    """某轴数值的统计信息

    Returns:
        Dict: count, mean, std, min, max, values；无数据时为空字典
    """
    values = [s.value(axis) for s in sort_snapshots(snapshots) if s.value(axis) is not None]
    if not values:
        return {}

    return {
        'count': int(len(values)),
        'mean': float(np.mean(values)),
        'std': float(np.std(values)),
        'min': float(np.min(values)),
        'max': float(np.max(values)),
        'values': [float(v) for v in values],
    }


def derive_insights(metrics: AnalyticsMetrics, goal_progress: Optional[float] = None) -> List[Insight]:
    """基于规则的进度提示"""
    insights = []
    if metrics.average_growth > INSIGHT_GROWTH_THRESHOLD:
        insights.append(Insight('positive', "增长显著", "平均增长率处于较高水平", 0.92))
    if metrics.consistency / 100.0 > INSIGHT_CONSISTENCY_THRESHOLD:
        insights.append(Insight('positive', "记录稳定", "测量记录非常规律", 0.88))
    if metrics.momentum > metrics.average_growth:
        insights.append(Insight('positive', "增长加速", "近期动量高于平均增长", 0.85))
    if goal_progress is not None and goal_progress * 100.0 > INSIGHT_GOAL_PROGRESS_THRESHOLD:
        insights.append(Insight('positive', "接近目标", f"目标已完成 {goal_progress * 100.0:.1f}%", 0.90))
    return insights
