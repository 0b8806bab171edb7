"""行程统计模块：会话计数、行程记录、当日统计和行程历史"""

import copy
import logging
import uuid
from typing import List, Optional

from models.data_models import (
    AlertLevel,
    DailyStats,
    HistorySummary,
    LiveStats,
    SessionCounters,
    TripRecord,
)

logger = logging.getLogger(__name__)

# 安全评分扣分权重
WARNING_PENALTY = 2.0
DANGER_PENALTY = 5.0
FATIGUE_PENALTY = 20.0


def calculate_safety_rating(warning_count: int, danger_count: int, average_fatigue: float) -> float:
    """
    计算单次行程安全评分。

    公式: clamp(100 - (warning*2 + danger*5 + avg_fatigue*20), 0, 100)
    """
    penalty = (
        warning_count * WARNING_PENALTY
        + danger_count * DANGER_PENALTY
        + average_fatigue * FATIGUE_PENALTY
    )
    return max(0.0, min(100.0, 100.0 - penalty))


def fatigue_band(score: float) -> str:
    """疲劳分数分档：low / moderate / high"""
    if score < 0.3:
        return "low"
    if score < 0.6:
        return "moderate"
    return "high"


def safety_band(rating: float) -> str:
    """安全评分分档：good / fair / poor"""
    if rating >= 80.0:
        return "good"
    if rating >= 60.0:
        return "fair"
    return "poor"


class TripAggregator:
    """汇总警报等级变化和眨眼/哈欠事件，会话结束时生成行程记录。"""

    def __init__(self, max_history: Optional[int] = None):
        self.max_history = max_history
        self._session: Optional[SessionCounters] = None
        self._history: List[TripRecord] = []
        self._daily = DailyStats()

    @property
    def session_active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[SessionCounters]:
        return copy.copy(self._session)

    @property
    def trip_history(self) -> List[TripRecord]:
        return list(self._history)

    @property
    def daily_stats(self) -> DailyStats:
        return copy.copy(self._daily)

    def start_session(self, now: float) -> bool:
        """开始新会话，已有会话时不做任何修改并返回 False。"""
        if self._session is not None:
            logger.info("已有进行中的行程，忽略开始请求")
            return False
        self._session = SessionCounters(start_time=now)
        logger.info("行程开始")
        return True

    def on_alert_level(self, level: AlertLevel, fatigue_score: float, now: float) -> None:
        """
        记录一帧的警报等级。

        进入 WARNING / DANGER 时分别计数一次（边沿触发），同时更新疲劳分数最大值和均值。
        """
        session = self._session
        if session is None:
            return

        if level != session.last_level:
            if level == AlertLevel.WARNING:
                session.warning_transitions += 1
            elif level == AlertLevel.DANGER:
                session.danger_transitions += 1
            session.last_level = level

        session.max_fatigue_score = max(session.max_fatigue_score, fatigue_score)
        session.fatigue_score_sum += fatigue_score
        session.fatigue_score_count += 1

    def on_blink_completed(self) -> None:
        if self._session is not None:
            self._session.total_blinks += 1

    def on_yawn_completed(self) -> None:
        if self._session is not None:
            self._session.total_yawns += 1

    def end_session(self, now: float) -> Optional[TripRecord]:
        """
        结束当前会话。

        Args:
            now: 结束时间（秒）

        Returns:
            新的 TripRecord；没有进行中的会话时返回 None 且不修改历史和统计
        """
        session = self._session
        if session is None:
            logger.info("没有进行中的行程，忽略结束请求")
            return None

        duration = max(0.0, now - session.start_time)
        average_fatigue = session.average_fatigue_score
        record = TripRecord(
            id=uuid.uuid4().hex,
            start_time=session.start_time,
            end_time=now,
            duration=duration,
            max_fatigue_score=session.max_fatigue_score,
            average_fatigue_score=average_fatigue,
            warning_count=session.warning_transitions,
            danger_count=session.danger_transitions,
            total_blinks=session.total_blinks,
            total_yawns=session.total_yawns,
            safety_rating=calculate_safety_rating(
                session.warning_transitions, session.danger_transitions, average_fatigue,
            ),
        )

        self._history.append(record)
        self._trim_history()
        self._fold_into_daily(record)
        self._session = None

        logger.info(
            "行程结束: 时长 %.0f 秒, 警告 %d 次, 危险 %d 次, 安全评分 %.1f",
            record.duration, record.warning_count, record.danger_count, record.safety_rating,
        )
        return record

    def set_max_history(self, max_history: Optional[int]) -> None:
        """修改历史上限，超出部分立即按最早优先丢弃。"""
        self.max_history = max_history
        self._trim_history()

    def _trim_history(self) -> None:
        if self.max_history is not None and len(self._history) > self.max_history:
            self._history = self._history[-self.max_history:]

    def _fold_into_daily(self, record: TripRecord) -> None:
        daily = self._daily
        daily.total_driving_time += record.duration
        daily.total_warnings += record.warning_count
        daily.total_danger_alerts += record.danger_count
        daily.total_blinks += record.total_blinks
        daily.total_yawns += record.total_yawns
        daily.trips_completed += 1
        # 各行程平均疲劳分数的滚动均值
        daily.average_fatigue_score += (
            record.average_fatigue_score - daily.average_fatigue_score
        ) / daily.trips_completed

    def reset_daily_stats(self) -> None:
        self._daily = DailyStats()

    def live_stats(self, now: float, level: AlertLevel = AlertLevel.NORMAL, fatigue_score: float = 0.0) -> LiveStats:
        """当前会话的实时计数；无会话时计数为 0。"""
        session = self._session
        if session is None:
            return LiveStats(
                session_active=False, session_duration=0.0,
                total_blinks=0, total_yawns=0,
                fatigue_score=fatigue_score, alert_level=level,
            )
        return LiveStats(
            session_active=True,
            session_duration=max(0.0, now - session.start_time),
            total_blinks=session.total_blinks,
            total_yawns=session.total_yawns,
            fatigue_score=fatigue_score,
            alert_level=level,
            warning_count=session.warning_transitions,
            danger_count=session.danger_transitions,
        )

    def history_summary(self) -> HistorySummary:
        """行程历史汇总：总时长、平均/最佳安全评分、近期改善幅度。"""
        ratings = [trip.safety_rating for trip in self._history]
        if not ratings:
            return HistorySummary(
                trip_count=0, total_duration=0.0,
                average_safety_rating=100.0, best_safety_rating=100.0,
                improvement_rate=0.0,
            )

        improvement = 0.0
        if len(ratings) >= 2:
            recent = ratings[-3:]
            older = ratings[:3]
            improvement = sum(recent) / len(recent) - sum(older) / len(older)

        return HistorySummary(
            trip_count=len(ratings),
            total_duration=sum(trip.duration for trip in self._history),
            average_safety_rating=sum(ratings) / len(ratings),
            best_safety_rating=max(ratings),
            improvement_rate=improvement,
        )

    def daily_safety_score(self) -> float:
        """当日安全评分：按完成行程数平均扣分，无行程时为 100。"""
        daily = self._daily
        if daily.trips_completed == 0:
            return 100.0
        penalty = (
            daily.total_warnings * WARNING_PENALTY
            + daily.total_danger_alerts * DANGER_PENALTY
            + daily.average_fatigue_score * FATIGUE_PENALTY
        ) / daily.trips_completed
        return max(0.0, 100.0 - penalty)
