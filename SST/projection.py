"""
预测模块 - 基于平均增长的短期(12周)外推
"""
import logging
from typing import List, Optional

from models import MeasurementSnapshot, ProjectionStep, sort_snapshots
from analytics import AnalyticsAggregator
from errors import InsufficientData
from utils import (
    PROJECTION_WEEKS, PROJECTION_DECAY, PROJECTION_CONFIDENCE_FLOOR, PROJECTION_BAND
)

logger = logging.getLogger(__name__)


class PredictiveProjector:
    """按周外推，增长线性衰减，置信度逐周下降并以 0.3 为下限"""

    def __init__(self, aggregator: Optional[AnalyticsAggregator] = None,
                 weeks: int = PROJECTION_WEEKS):
        self.aggregator = aggregator or AnalyticsAggregator()
        self.weeks = weeks

    def project_values(self, last_value: float, average_growth: float) -> List[ProjectionStep]:
        """由最后一次数值和平均增长生成逐周预测

        第 i 周:
            growth = average_growth * (1 - 0.05 i)
            value = last_value * (1 + growth / 100)
            confidence = max(0.3, 1 - 0.05 i)
            range = [value * 0.9, value * 1.1]
        """
        steps = []
        for week in range(1, self.weeks + 1):
            decay = 1 - week * PROJECTION_DECAY
            predicted_growth = average_growth * decay
            predicted_value = last_value * (1 + predicted_growth / 100)
            steps.append(ProjectionStep(
                week=week,
                predicted_growth=predicted_growth,
                predicted_value=predicted_value,
                confidence=max(PROJECTION_CONFIDENCE_FLOOR, decay),
                range_low=predicted_value * (1 - PROJECTION_BAND),
                range_high=predicted_value * (1 + PROJECTION_BAND),
            ))
        return steps

    def project(self, snapshots: List[MeasurementSnapshot], axis: str = 'length',
                average_growth: Optional[float] = None) -> List[ProjectionStep]:
        """由快照序列预测某轴

        Raises:
            InsufficientData: 该轴有效快照少于 2 条
        """
        with_axis = [s for s in sort_snapshots(snapshots) if s.value(axis) is not None]
        if len(with_axis) < 2:
            raise InsufficientData(2, len(with_axis), f"含 {axis} 的快照")

        if average_growth is None:
            average_growth = self.aggregator.aggregate(snapshots).average_growth
        last_value = with_axis[-1].value(axis)
        logger.debug(f"预测 {axis}: 最后值 {last_value:.2f}, 平均增长 {average_growth:.3f}")
        return self.project_values(last_value, average_growth)
