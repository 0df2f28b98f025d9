"""
配置模块 - 显式传入各组件的设置值，通过键值存储持久化
"""
import logging
from dataclasses import asdict, dataclass, fields, replace

from utils import (
    ASSUMED_REFERENCE_PIXELS, DEFAULT_REFERENCE_SIZE_CM,
    DETECT_TOLERANCE, DETECT_MIN_AREA_PX, TIME_RANGES, UNIT_LABELS
)

logger = logging.getLogger(__name__)

SETTINGS_KEY = 'settings'


@dataclass(frozen=True)
class Settings:
    """用户设置"""
    display_unit: str = 'cm'
    reference_size_cm: float = DEFAULT_REFERENCE_SIZE_CM
    assumed_reference_pixels: float = ASSUMED_REFERENCE_PIXELS
    detect_tolerance: int = DETECT_TOLERANCE
    detect_min_area: int = DETECT_MIN_AREA_PX
    time_range: str = '30d'

    def __post_init__(self):
        if self.display_unit not in UNIT_LABELS:
            raise ValueError(f"不支持的显示单位: {self.display_unit}")
        if self.time_range not in TIME_RANGES:
            raise ValueError(f"未知的时间范围: {self.time_range}")

    def updated(self, **changes) -> 'Settings':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Settings':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"忽略未知的设置项: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_settings(kv_store) -> Settings:
    """从键值存储读取设置，不存在时返回默认值"""
    data = kv_store.get(SETTINGS_KEY)
    if not data:
        return Settings()
    try:
        return Settings.from_dict(data)
    except (TypeError, ValueError):
        logger.exception("设置数据无效，使用默认设置")
        return Settings()


def save_settings(kv_store, settings: Settings) -> None:
    kv_store.set(SETTINGS_KEY, settings.to_dict())
