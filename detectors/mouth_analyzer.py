"""嘴巴状态分析模块，负责计算嘴巴开合度（MAR）"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from models.data_models import OpennessResult

logger = logging.getLogger(__name__)

REQUIRED_LIP_POINTS = 12
MIN_HORIZONTAL_DISTANCE = 0.001
# 关键点不足时返回的"闭嘴"值
CLOSED_MOUTH_SENTINEL = 0.0

# 唇部轮廓索引：左嘴角、上唇中点、右嘴角、下唇中点
LEFT_CORNER = 0
TOP_CENTER = 3
RIGHT_CORNER = 6
BOTTOM_CENTER = 9


def calculate_mouth_openness(lip_points: Sequence[Tuple[float, float]]) -> OpennessResult:
    """
    计算嘴巴开合度。

    公式: MAR = |top-bottom| / |left-right|，结果截断到 [0, 1]

    Args:
        lip_points: 至少 12 个按唇部轮廓排列的归一化关键点

    Returns:
        OpennessResult；关键点不足时返回 0.0 并标记 insufficient_landmarks，
        嘴角距离过小时返回 0.0
    """
    if len(lip_points) < REQUIRED_LIP_POINTS:
        logger.warning("嘴巴关键点不足: %d", len(lip_points))
        return OpennessResult(value=CLOSED_MOUTH_SENTINEL, insufficient_landmarks=True)

    horizontal = math.dist(lip_points[LEFT_CORNER], lip_points[RIGHT_CORNER])
    if horizontal < MIN_HORIZONTAL_DISTANCE:
        return OpennessResult(value=CLOSED_MOUTH_SENTINEL)

    vertical = math.dist(lip_points[TOP_CENTER], lip_points[BOTTOM_CENTER])

    mar = vertical / horizontal
    return OpennessResult(value=max(0.0, min(1.0, mar)))


class MouthAnalyzer:
    """计算嘴巴开合度"""

    def analyze(self, lips: Optional[List[Tuple[float, float]]]) -> Optional[OpennessResult]:
        """唇部关键点缺失时返回 None（无新信息）。"""
        if lips is None:
            return None
        return calculate_mouth_openness(lips)
