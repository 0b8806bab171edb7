"""疲劳监测流水线：开合度分析 -> 时序跟踪 -> 警报判定 -> 行程统计"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from config.detection_config import DetectionConfig
from detectors.eye_analyzer import EyeAnalyzer
from detectors.mouth_analyzer import MouthAnalyzer
from evaluators.alert_evaluator import AlertEvaluator
from models.data_models import (
    AlertDecision,
    AlertLevel,
    DailyStats,
    FaceLandmarks,
    FrameObservation,
    FrameReport,
    HistorySummary,
    LiveStats,
    TripRecord,
)
from trackers.signal_tracker import SignalTracker
from trips.trip_aggregator import TripAggregator

logger = logging.getLogger(__name__)

LEVEL_CHANGED = "level_changed"
TRIGGER_ALERT = "trigger_alert"
TRIP_COMPLETED = "trip_completed"
BLINK = "blink"
YAWN = "yawn"

EVENTS = (LEVEL_CHANGED, TRIGGER_ALERT, TRIP_COMPLETED, BLINK, YAWN)


class FatigueMonitor:
    """
    串行执行每帧流水线。帧处理、行程开始/结束和配置更新共用一把锁，
    任何一帧的状态修改都不会与其他操作交错。

    监听事件:
        level_changed(old_level, new_level)
        trigger_alert(decision)
        trip_completed(record)
        blink()
        yawn()
    """

    def __init__(self, config: Optional[DetectionConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config or DetectionConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}

        effective = self.config.effective()
        self.eye_analyzer = EyeAnalyzer()
        self.mouth_analyzer = MouthAnalyzer()
        self.tracker = SignalTracker(effective)
        self.evaluator = AlertEvaluator(effective)
        self.aggregator = TripAggregator(max_history=self.config.max_trip_history)

        self._alert_level = AlertLevel.NORMAL
        self._last_decision = AlertDecision(
            level=AlertLevel.NORMAL, trigger_alert=False, fatigue_score=0.0,
        )

    # ---- 监听 ----

    def add_listener(self, event: str, callback: Callable) -> None:
        if event not in self._listeners:
            raise ValueError(f"未知事件: {event}")
        with self._lock:
            self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable) -> None:
        with self._lock:
            if callback in self._listeners.get(event, []):
                self._listeners[event].remove(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("监听回调出错: %s", event)

    # ---- 帧处理 ----

    def build_observation(self, landmarks: Optional[FaceLandmarks], timestamp: float) -> FrameObservation:
        """由人脸关键点构建单帧观测；landmarks 为 None 表示未检测到人脸。"""
        if landmarks is None:
            return FrameObservation(
                face_present=False, eye_openness=None,
                mouth_openness=None, timestamp=timestamp,
            )

        eye_result = self.eye_analyzer.analyze(landmarks.left_eye, landmarks.right_eye)
        mouth_result = self.mouth_analyzer.analyze(landmarks.lips)
        return FrameObservation(
            face_present=True,
            eye_openness=eye_result.value if eye_result is not None else None,
            mouth_openness=mouth_result.value if mouth_result is not None else None,
            timestamp=timestamp,
        )

    def process_landmarks(self, landmarks: Optional[FaceLandmarks], timestamp: Optional[float] = None) -> FrameReport:
        """处理一帧人脸关键点，timestamp 缺省时读取时钟。"""
        if timestamp is None:
            timestamp = self._clock()
        return self.process_observation(self.build_observation(landmarks, timestamp))

    def process_observation(self, observation: FrameObservation) -> FrameReport:
        """
        对单帧观测执行 跟踪 -> 判定 -> 统计，整个过程持锁。

        Returns:
            FrameReport，包含信号更新、警报判定以及等级是否变化
        """
        with self._lock:
            update = self.tracker.update(observation)
            decision = self.evaluator.evaluate(update.signals)

            aggregator = self.aggregator
            if update.blink_completed:
                aggregator.on_blink_completed()
            if update.yawn_completed:
                aggregator.on_yawn_completed()
            aggregator.on_alert_level(decision.level, decision.fatigue_score, observation.timestamp)

            previous = self._alert_level
            level_changed = decision.level != previous
            self._alert_level = decision.level
            self._last_decision = decision

            if update.blink_completed:
                self._emit(BLINK)
            if update.yawn_completed:
                self._emit(YAWN)
            if level_changed:
                logger.info("警报等级 %s -> %s", previous.value, decision.level.value)
                self._emit(LEVEL_CHANGED, previous, decision.level)
            if decision.trigger_alert:
                self._emit(TRIGGER_ALERT, decision)

            return FrameReport(
                observation=observation,
                update=update,
                decision=decision,
                level_changed=level_changed,
            )

    # ---- 行程 ----

    def start_session(self, now: Optional[float] = None) -> bool:
        with self._lock:
            return self.aggregator.start_session(self._clock() if now is None else now)

    def end_session(self, now: Optional[float] = None) -> Optional[TripRecord]:
        with self._lock:
            record = self.aggregator.end_session(self._clock() if now is None else now)
            if record is not None:
                self._emit(TRIP_COMPLETED, record)
            return record

    @property
    def session_active(self) -> bool:
        with self._lock:
            return self.aggregator.session_active

    # ---- 状态读取 ----

    @property
    def alert_level(self) -> AlertLevel:
        with self._lock:
            return self._alert_level

    @property
    def last_decision(self) -> AlertDecision:
        with self._lock:
            return self._last_decision

    def live_stats(self, now: Optional[float] = None) -> LiveStats:
        with self._lock:
            return self.aggregator.live_stats(
                self._clock() if now is None else now,
                level=self._alert_level,
                fatigue_score=self._last_decision.fatigue_score,
            )

    @property
    def daily_stats(self) -> DailyStats:
        with self._lock:
            return self.aggregator.daily_stats

    @property
    def trip_history(self) -> List[TripRecord]:
        with self._lock:
            return self.aggregator.trip_history

    def history_summary(self) -> HistorySummary:
        with self._lock:
            return self.aggregator.history_summary()

    def daily_safety_score(self) -> float:
        with self._lock:
            return self.aggregator.daily_safety_score()

    def update_config(self, config: DetectionConfig) -> None:
        """替换阈值配置并重置时序信号，行程计数保留。"""
        with self._lock:
            self.config = config
            effective = config.effective()
            self.tracker = SignalTracker(effective)
            self.evaluator = AlertEvaluator(effective)
            self.aggregator.set_max_history(config.max_trip_history)
            self._alert_level = AlertLevel.NORMAL
            self._last_decision = AlertDecision(
                level=AlertLevel.NORMAL, trigger_alert=False, fatigue_score=0.0,
            )

    def update_config_overrides(self, overrides: dict) -> DetectionConfig:
        """
        在当前配置上应用部分覆盖值，读取与替换在同一把锁内完成。

        Raises:
            ValueError: 覆盖值无效，此时配置保持不变
        """
        with self._lock:
            config = self.config.merged(overrides)
            self.update_config(config)
            return config

    def reset(self) -> None:
        """重置时序信号（停止监测时调用），行程计数保留。"""
        with self._lock:
            self.tracker.reset()
            self._alert_level = AlertLevel.NORMAL
            self._last_decision = AlertDecision(
                level=AlertLevel.NORMAL, trigger_alert=False, fatigue_score=0.0,
            )
