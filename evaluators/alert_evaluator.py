"""警报等级判定模块"""

from typing import List, Optional

from config.detection_config import DetectionConfig
from models.data_models import AlertDecision, AlertLevel, SignalStates

# 浮点时长比较容差（秒），tick 恰好落在阈值上时视为达到
_DURATION_EPSILON = 1e-6

# 疲劳分数权重
EYE_WEIGHT = 0.6
YAWN_WEIGHT = 0.4


def _reached(duration: float, threshold: float) -> bool:
    return duration > threshold - _DURATION_EPSILON


class AlertEvaluator:
    """根据信号快照计算警报等级，每帧重新判定，不做滞回。"""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def evaluate(self, signals: SignalStates) -> AlertDecision:
        """
        判定当前警报等级。

        Args:
            signals: 时序跟踪器输出的信号快照

        Returns:
            AlertDecision；处于 DANGER 的每一帧 trigger_alert 均为 True
        """
        score = self.fatigue_score(signals)

        # 人脸丢失优先，但最多为 WARNING
        if signals.face_absent.active:
            return AlertDecision(
                level=AlertLevel.WARNING, trigger_alert=False,
                fatigue_score=score, reasons=["人脸丢失"],
            )

        eyes = signals.eyes_closed
        yawn = signals.yawning
        danger_reasons: List[str] = []
        if eyes.active and _reached(eyes.duration, self.config.eye_closed_duration):
            danger_reasons.append("持续闭眼")
        if yawn.active and _reached(yawn.duration, self.config.yawn_duration):
            danger_reasons.append("持续哈欠")
        if danger_reasons:
            return AlertDecision(
                level=AlertLevel.DANGER, trigger_alert=True,
                fatigue_score=score, reasons=danger_reasons,
            )

        reasons: List[str] = []
        if eyes.active:
            reasons.append("闭眼")
        if yawn.active:
            reasons.append("哈欠")
        if reasons:
            return AlertDecision(
                level=AlertLevel.WARNING, trigger_alert=False,
                fatigue_score=score, reasons=reasons,
            )

        return AlertDecision(level=AlertLevel.NORMAL, trigger_alert=False, fatigue_score=score)

    def fatigue_score(self, signals: SignalStates) -> float:
        """闭眼和哈欠时长相对阈值的加权和，范围 [0, 1]。"""
        score = 0.0
        if signals.eyes_closed.active and self.config.eye_closed_duration > 0:
            score += EYE_WEIGHT * min(signals.eyes_closed.duration / self.config.eye_closed_duration, 1.0)
        if signals.yawning.active and self.config.yawn_duration > 0:
            score += YAWN_WEIGHT * min(signals.yawning.duration / self.config.yawn_duration, 1.0)
        return max(0.0, min(1.0, score))
