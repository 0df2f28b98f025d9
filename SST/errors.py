"""
异常模块 - 定义核心计算中的各类错误
"""


class MeasurementError(Exception):
    """所有核心错误的基类"""


class InvalidReference(MeasurementError, ValueError):
    """参考物尺寸或像素长度不为正"""


class InsufficientData(MeasurementError):
    """快照数量不足，无法计算增长或预测"""

    def __init__(self, required: int, available: int, what: str = "快照"):
        self.required = required
        self.available = available
        super().__init__(f"至少需要 {required} 条{what}，当前只有 {available} 条")


class ToolStateConflict(MeasurementError):
    """手势完成时不存在对应的起点"""


class StorageFailure(MeasurementError):
    """外部存储读写失败"""


class DetectionEmpty(MeasurementError):
    """轮廓检测在点击位置未找到目标"""

    def __init__(self, x: float, y: float):
        self.x = x
        self.y = y
        super().__init__(f"在 ({x:.0f}, {y:.0f}) 处未检测到目标轮廓")


class DetectionBusy(MeasurementError):
    """上一次轮廓检测尚未结束"""


class ValidationError(MeasurementError, ValueError):
    """保存前的字段校验失败"""
