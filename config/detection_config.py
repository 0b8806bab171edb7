"""检测阈值配置：默认值、JSON 配置文件加载、警报灵敏度换算"""

import dataclasses
import json
import math
from dataclasses import dataclass
from typing import Optional

# 默认阈值
_DEFAULTS = {
    "eye_closed_threshold": 0.2,
    "yawn_threshold": 0.04,
    "eye_closed_duration": 2.0,
    "yawn_duration": 1.5,
    "face_absence_timeout": 3.0,
    "tick_interval": 0.1,
    "alert_sensitivity": 0.5,
    "max_trip_history": None,
    "enable_sound_alerts": True,
    "auto_start_trips": False,
}

# 灵敏度为该值时阈值保持原样
NEUTRAL_SENSITIVITY = 0.5

_BOOL_FIELDS = ("enable_sound_alerts", "auto_start_trips")
_INT_FIELDS = ("max_trip_history",)


def _coerce(key: str, value):
    """按字段类型转换配置值，失败时抛出 ValueError"""
    if key in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        raise ValueError(f"{key} 必须为布尔值")
    try:
        if key in _INT_FIELDS:
            number = int(value)
            if number < 1:
                raise ValueError(f"{key} 必须为正整数")
            return number
        number = float(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"{key} 取值无效: {value!r}") from e
    if not math.isfinite(number):
        raise ValueError(f"{key} 必须为有限数值")
    if number <= 0 and key != "alert_sensitivity":
        raise ValueError(f"{key} 必须为正数")
    return number


@dataclass
class DetectionConfig:
    """检测阈值和行为开关"""
    eye_closed_threshold: float = _DEFAULTS["eye_closed_threshold"]
    yawn_threshold: float = _DEFAULTS["yawn_threshold"]
    eye_closed_duration: float = _DEFAULTS["eye_closed_duration"]
    yawn_duration: float = _DEFAULTS["yawn_duration"]
    face_absence_timeout: float = _DEFAULTS["face_absence_timeout"]
    tick_interval: float = _DEFAULTS["tick_interval"]
    alert_sensitivity: float = _DEFAULTS["alert_sensitivity"]
    max_trip_history: Optional[int] = _DEFAULTS["max_trip_history"]
    enable_sound_alerts: bool = _DEFAULTS["enable_sound_alerts"]
    auto_start_trips: bool = _DEFAULTS["auto_start_trips"]

    @classmethod
    def from_dict(cls, data: dict) -> "DetectionConfig":
        """
        用字典构建配置，忽略未知字段和 None 值。

        Raises:
            ValueError: 字段值无法转换为对应类型
        """
        return cls().merged(data)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def merged(self, overrides: dict) -> "DetectionConfig":
        """返回应用了部分覆盖值的新配置。"""
        data = self.to_dict()
        for key in _DEFAULTS:
            if key in overrides and overrides[key] is not None:
                data[key] = _coerce(key, overrides[key])
        return DetectionConfig(**data)

    def effective(self) -> "DetectionConfig":
        """
        按警报灵敏度换算实际使用的阈值。

        灵敏度取值 0~1，换算系数 factor = 0.5 + sensitivity（0.5 时为 1）。
        系数越大越敏感：时长阈值和人脸丢失超时除以系数，闭眼开合度阈值乘以系数，
        哈欠开合度阈值除以系数。

        Returns:
            换算后的 DetectionConfig，alert_sensitivity 归为中性值
        """
        sensitivity = min(max(float(self.alert_sensitivity), 0.0), 1.0)
        factor = 0.5 + sensitivity

        return dataclasses.replace(
            self,
            eye_closed_threshold=min(self.eye_closed_threshold * factor, 1.0),
            yawn_threshold=min(self.yawn_threshold / factor, 1.0),
            eye_closed_duration=self.eye_closed_duration / factor,
            yawn_duration=self.yawn_duration / factor,
            face_absence_timeout=self.face_absence_timeout / factor,
            alert_sensitivity=NEUTRAL_SENSITIVITY,
        )


def load_config(config_path: Optional[str] = None) -> DetectionConfig:
    """从 JSON 配置文件加载阈值参数，缺失字段使用默认值。"""
    if config_path is None:
        return DetectionConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"警告: 配置文件不存在 {config_path}，使用默认阈值")
        return DetectionConfig()
    except json.JSONDecodeError:
        print(f"警告: 配置文件格式错误 {config_path}，使用默认阈值")
        return DetectionConfig()

    if not isinstance(data, dict):
        print(f"警告: 配置文件格式错误 {config_path}，使用默认阈值")
        return DetectionConfig()

    try:
        return DetectionConfig.from_dict(data)
    except ValueError as e:
        print(f"警告: 配置文件取值无效 {config_path} ({e})，使用默认阈值")
        return DetectionConfig()
