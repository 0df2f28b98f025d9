"""
工具模块 - 常量定义和单位换算
"""
import math

# ==================== 常量定义 ====================
# 单位换算
CM_PER_INCH = 2.54                     # 1 英寸 = 2.54 厘米（精确值）
BASE_UNIT = 'cm'                       # 存储统一使用厘米
UNIT_LABELS = {'cm': 'cm', 'in': 'in'}  # 支持的显示单位

# 标定
ASSUMED_REFERENCE_PIXELS = 50.0        # 未绘制参考线时假定参考物跨度(像素)，近似值
DEFAULT_REFERENCE_SIZE_CM = 2.5        # 默认参考物尺寸(厘米)

# 轮廓检测
DETECT_TOLERANCE = 20                  # 区域生长灰度容差
DETECT_MIN_AREA_PX = 100               # 轮廓最小面积(像素)
DETECT_EPSILON_RATIO = 0.01            # 多边形近似精度(相对周长)

# 统计分析
MOMENTUM_WINDOW = 3                    # 动量窗口(最近 N 个增长率)
SECONDS_PER_DAY = 86400
TIME_RANGES = {                        # 时间范围筛选(天)，None 表示全部
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
    'all': None,
}
INSIGHT_GROWTH_THRESHOLD = 1.5
INSIGHT_CONSISTENCY_THRESHOLD = 0.8
INSIGHT_GOAL_PROGRESS_THRESHOLD = 70.0

# 预测
PROJECTION_WEEKS = 12                  # 预测周数
PROJECTION_DECAY = 0.05                # 每周增长衰减
PROJECTION_CONFIDENCE_FLOOR = 0.3      # 置信度下限
PROJECTION_BAND = 0.1                  # 预测区间 ±10%

# 成就
WEEK_STREAK_DAYS = 7
MONTH_STREAK_DAYS = 30
LENGTH_GAIN_TARGET_IN = 0.5
GIRTH_GAIN_TARGET_IN = 0.25


def to_cm(value: float) -> float:
    """英寸 → 厘米"""
    return value * CM_PER_INCH


def to_inches(value: float) -> float:
    """厘米 → 英寸"""
    return value / CM_PER_INCH


def convert_unit(value: float, from_unit: str, to_unit: str) -> float:
    """在 cm 与 in 之间换算，单位相同时原样返回"""
    if from_unit not in UNIT_LABELS or to_unit not in UNIT_LABELS:
        raise ValueError(f"不支持的单位: {from_unit} -> {to_unit}")
    if from_unit == to_unit:
        return value
    if from_unit == 'cm':
        return to_inches(value)
    return to_cm(value)


def clamp(value: float, low: float, high: float) -> float:
    """将数值限制在 [low, high] 区间"""
    return max(low, min(high, value))


def finite_or_zero(value: float) -> float:
    """NaN/inf 统一替换为 0，保证统计结果可直接显示"""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(value)
