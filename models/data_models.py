"""核心数据模型定义"""

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


@dataclass
class FaceLandmarks:
    """人脸关键点检测结果（归一化坐标），缺失的区域为 None"""
    left_eye: Optional[List[Tuple[float, float]]]
    right_eye: Optional[List[Tuple[float, float]]]
    lips: Optional[List[Tuple[float, float]]]
    all_landmarks: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class OpennessResult:
    """眼睛/嘴巴开合度计算结果"""
    value: float
    insufficient_landmarks: bool = False


@dataclass(frozen=True)
class FrameObservation:
    """单帧分析结果，未检测到人脸或对应区域缺失时开合度为 None"""
    face_present: bool
    eye_openness: Optional[float]
    mouth_openness: Optional[float]
    timestamp: float


@dataclass
class SignalState:
    """单个时序信号的状态"""
    active: bool = False
    duration: float = 0.0
    last_transition_time: Optional[float] = None


@dataclass
class SignalStates:
    """闭眼、哈欠、人脸丢失三个信号"""
    eyes_closed: SignalState = field(default_factory=SignalState)
    yawning: SignalState = field(default_factory=SignalState)
    face_absent: SignalState = field(default_factory=SignalState)

    def snapshot(self) -> "SignalStates":
        return copy.deepcopy(self)


@dataclass
class SignalEdge:
    """信号边沿事件；退出时 duration 为刚结束的持续时长"""
    signal: str
    entered: bool
    timestamp: float
    duration: float = 0.0


@dataclass
class TrackerUpdate:
    """时序跟踪器单帧输出"""
    signals: SignalStates
    edges: List[SignalEdge] = field(default_factory=list)
    blink_completed: bool = False
    yawn_completed: bool = False


class AlertLevel(Enum):
    """三级警报"""
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def display_text(self) -> str:
        return {
            AlertLevel.NORMAL: "Alert & Safe",
            AlertLevel.WARNING: "Showing Signs of Fatigue",
            AlertLevel.DANGER: "TAKE A BREAK - UNSAFE TO DRIVE",
        }[self]

    @property
    def short_text(self) -> str:
        return {
            AlertLevel.NORMAL: "Safe",
            AlertLevel.WARNING: "Caution",
            AlertLevel.DANGER: "Danger",
        }[self]


@dataclass
class AlertDecision:
    """警报判定结果"""
    level: AlertLevel
    trigger_alert: bool
    fatigue_score: float
    reasons: List[str] = field(default_factory=list)


@dataclass
class SessionCounters:
    """进行中行程的累计计数"""
    start_time: float
    warning_transitions: int = 0
    danger_transitions: int = 0
    total_blinks: int = 0
    total_yawns: int = 0
    max_fatigue_score: float = 0.0
    fatigue_score_sum: float = 0.0
    fatigue_score_count: int = 0
    last_level: AlertLevel = AlertLevel.NORMAL

    @property
    def average_fatigue_score(self) -> float:
        if self.fatigue_score_count == 0:
            return 0.0
        return self.fatigue_score_sum / self.fatigue_score_count


@dataclass(frozen=True)
class TripRecord:
    """已结束行程的汇总记录"""
    id: str
    start_time: float
    end_time: float
    duration: float
    max_fatigue_score: float
    average_fatigue_score: float
    warning_count: int
    danger_count: int
    total_blinks: int
    total_yawns: int
    safety_rating: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = datetime.fromtimestamp(self.start_time).isoformat()
        data["ended_at"] = datetime.fromtimestamp(self.end_time).isoformat()
        return data


@dataclass
class DailyStats:
    """当日已完成行程的滚动统计"""
    total_driving_time: float = 0.0
    total_warnings: int = 0
    total_danger_alerts: int = 0
    total_blinks: int = 0
    total_yawns: int = 0
    average_fatigue_score: float = 0.0
    trips_completed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class HistorySummary:
    """行程历史汇总"""
    trip_count: int
    total_duration: float
    average_safety_rating: float
    best_safety_rating: float
    improvement_rate: float


@dataclass
class LiveStats:
    """实时显示用的计数"""
    session_active: bool
    session_duration: float
    total_blinks: int
    total_yawns: int
    fatigue_score: float
    alert_level: AlertLevel
    warning_count: int = 0
    danger_count: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["alert_level"] = self.alert_level.value
        return data


@dataclass
class FrameReport:
    """单帧流水线输出"""
    observation: FrameObservation
    update: TrackerUpdate
    decision: AlertDecision
    level_changed: bool = False
