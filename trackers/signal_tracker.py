"""时序信号跟踪模块：维护闭眼、哈欠、人脸丢失的持续时长并输出边沿事件"""

import logging
from typing import List, Optional

from config.detection_config import DetectionConfig
from models.data_models import (
    FrameObservation,
    SignalEdge,
    SignalState,
    SignalStates,
    TrackerUpdate,
)

logger = logging.getLogger(__name__)

EYES_CLOSED = "eyes_closed"
YAWNING = "yawning"
FACE_ABSENT = "face_absent"

# 浮点时间比较容差（秒）
_TIME_EPSILON = 1e-6


class SignalTracker:
    """
    按帧更新三个信号。时长以固定 tick 为单位累加，由信号进入激活状态后
    经过的时间决定，与帧率无关。
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self._signals = SignalStates()
        self._last_face_present_time: Optional[float] = None
        self._last_timestamp: Optional[float] = None

    @property
    def signals(self) -> SignalStates:
        return self._signals.snapshot()

    @property
    def last_face_present_time(self) -> Optional[float]:
        return self._last_face_present_time

    def reset(self):
        """清空所有信号和时间基准"""
        self._signals = SignalStates()
        self._last_face_present_time = None
        self._last_timestamp = None

    def update(self, observation: FrameObservation) -> TrackerUpdate:
        """
        处理一帧观测结果。

        Args:
            observation: 单帧分析结果

        Returns:
            TrackerUpdate，包含信号快照、边沿事件以及眨眼/哈欠完成标志
        """
        now = self._monotonic_timestamp(observation.timestamp)
        if self._last_face_present_time is None:
            self._last_face_present_time = now

        for state in (self._signals.eyes_closed, self._signals.yawning, self._signals.face_absent):
            self._advance(state, now)

        edges: List[SignalEdge] = []
        blink_completed = False
        yawn_completed = False

        if not observation.face_present:
            absent_for = now - self._last_face_present_time
            face_absent = self._signals.face_absent
            if not face_absent.active and absent_for >= self.config.face_absence_timeout - _TIME_EPSILON:
                edges.append(self._enter(FACE_ABSENT, face_absent, now))
                logger.info("人脸丢失超过 %.1f 秒", absent_for)
        else:
            self._last_face_present_time = now
            if self._signals.face_absent.active:
                edges.append(self._exit(FACE_ABSENT, self._signals.face_absent, now))

            if observation.eye_openness is not None:
                closed = observation.eye_openness < self.config.eye_closed_threshold
                edge = self._apply(EYES_CLOSED, self._signals.eyes_closed, closed, now)
                if edge is not None:
                    edges.append(edge)
                    blink_completed = not edge.entered

            if observation.mouth_openness is not None:
                yawning = observation.mouth_openness > self.config.yawn_threshold
                edge = self._apply(YAWNING, self._signals.yawning, yawning, now)
                if edge is not None:
                    edges.append(edge)
                    yawn_completed = not edge.entered

        return TrackerUpdate(
            signals=self._signals.snapshot(),
            edges=edges,
            blink_completed=blink_completed,
            yawn_completed=yawn_completed,
        )

    def _monotonic_timestamp(self, timestamp: float) -> float:
        """时间戳回退时钳制到上一帧，保证按到达顺序处理"""
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            logger.warning(
                "帧时间戳回退 %.3f -> %.3f，按上一帧时间处理",
                self._last_timestamp, timestamp,
            )
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp
        return timestamp

    def _advance(self, state: SignalState, now: float) -> None:
        """按已经过的完整 tick 数更新激活信号的时长"""
        if not state.active or state.last_transition_time is None:
            return
        tick = self.config.tick_interval
        ticks = int((now - state.last_transition_time) / tick + _TIME_EPSILON)
        duration = ticks * tick
        if duration > state.duration:
            state.duration = duration

    def _apply(self, name: str, state: SignalState, value: bool, now: float) -> Optional[SignalEdge]:
        if value == state.active:
            return None
        if value:
            return self._enter(name, state, now)
        return self._exit(name, state, now)

    @staticmethod
    def _enter(name: str, state: SignalState, now: float) -> SignalEdge:
        state.active = True
        state.duration = 0.0
        state.last_transition_time = now
        return SignalEdge(signal=name, entered=True, timestamp=now)

    @staticmethod
    def _exit(name: str, state: SignalState, now: float) -> SignalEdge:
        ended = state.duration
        state.active = False
        state.duration = 0.0
        state.last_transition_time = now
        return SignalEdge(signal=name, entered=False, timestamp=now, duration=ended)
