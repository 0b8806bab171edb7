"""眼睛状态分析模块，负责计算眼睛开合度（EAR）"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from models.data_models import OpennessResult

logger = logging.getLogger(__name__)

REQUIRED_EYE_POINTS = 6
# 眼角水平距离低于该值时视为无效，避免除零
MIN_HORIZONTAL_DISTANCE = 0.001
# 关键点不足时返回的"完全睁眼"值
OPEN_EYE_SENTINEL = 1.0


def calculate_eye_openness(eye_points: Sequence[Tuple[float, float]]) -> OpennessResult:
    """
    计算单只眼睛的开合度。

    公式: EAR = (|p2-p6| + |p3-p5|) / (2 * |p1-p4|)，结果截断到 [0, 1]

    Args:
        eye_points: 至少 6 个按眼睛轮廓排列的归一化关键点 [(x,y), ...]，p1/p4 为眼角

    Returns:
        OpennessResult；关键点不足时返回 1.0 并标记 insufficient_landmarks，
        眼角距离过小时返回 1.0
    """
    if len(eye_points) < REQUIRED_EYE_POINTS:
        logger.warning("眼睛关键点不足: %d", len(eye_points))
        return OpennessResult(value=OPEN_EYE_SENTINEL, insufficient_landmarks=True)

    p1, p2, p3, p4, p5, p6 = eye_points[:REQUIRED_EYE_POINTS]

    horizontal = math.dist(p1, p4)
    if horizontal < MIN_HORIZONTAL_DISTANCE:
        return OpennessResult(value=OPEN_EYE_SENTINEL)

    vertical_1 = math.dist(p2, p6)
    vertical_2 = math.dist(p3, p5)

    ear = (vertical_1 + vertical_2) / (2.0 * horizontal)
    return OpennessResult(value=max(0.0, min(1.0, ear)))


class EyeAnalyzer:
    """合并双眼开合度"""

    def analyze(
        self,
        left_eye: Optional[List[Tuple[float, float]]],
        right_eye: Optional[List[Tuple[float, float]]],
    ) -> Optional[OpennessResult]:
        """
        分析双眼开合度，取两眼平均值。

        Args:
            left_eye: 左眼关键点，未定位到时为 None
            right_eye: 右眼关键点，未定位到时为 None

        Returns:
            OpennessResult；单眼缺失时使用另一只眼，双眼都缺失时返回 None
        """
        results = [
            calculate_eye_openness(points)
            for points in (left_eye, right_eye)
            if points is not None
        ]
        if not results:
            return None

        avg = sum(r.value for r in results) / len(results)
        return OpennessResult(
            value=avg,
            insufficient_landmarks=any(r.insufficient_landmarks for r in results),
        )
