"""嘴巴开合度计算单元测试"""

import logging
import math

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from detectors.mouth_analyzer import (
    CLOSED_MOUTH_SENTINEL,
    MouthAnalyzer,
    calculate_mouth_openness,
)


def _lips(gap=0.01, width=0.2, cx=0.5, cy=0.7):
    """构造 12 个唇部轮廓点：0 左嘴角，3 上唇中点，6 右嘴角，9 下唇中点"""
    pts = []
    for i in range(12):
        angle = math.pi - i * (2 * math.pi / 12)
        x = cx + (width / 2) * math.cos(angle)
        y = cy - (gap / 2) * math.sin(angle)
        pts.append((x, y))
    return pts


coords = st.floats(min_value=-1.0, max_value=2.0, allow_nan=False, allow_infinity=False)
points = st.tuples(coords, coords)


class TestCalculateMouthOpenness:
    def test_closed_mouth(self):
        result = calculate_mouth_openness(_lips(gap=0.0))
        assert result.value == pytest.approx(0.0, abs=1e-9)

    def test_yawning_mouth(self):
        # 0.1 / 0.2 = 0.5
        result = calculate_mouth_openness(_lips(gap=0.1, width=0.2))
        assert result.value == pytest.approx(0.5)
        assert result.value > 0.04

    def test_clamped_to_one(self):
        result = calculate_mouth_openness(_lips(gap=0.5, width=0.1))
        assert result.value == 1.0

    def test_degenerate_corners_return_closed(self):
        result = calculate_mouth_openness(_lips(gap=0.1, width=0.0005))
        assert result.value == CLOSED_MOUTH_SENTINEL
        assert result.insufficient_landmarks is False

    @pytest.mark.parametrize("count", [0, 6, 11])
    def test_insufficient_points(self, count, caplog):
        with caplog.at_level(logging.WARNING):
            result = calculate_mouth_openness(_lips()[:count])
        assert result.value == 0.0
        assert result.insufficient_landmarks is True
        assert "嘴巴关键点不足" in caplog.text

    @given(st.lists(points, min_size=12, max_size=20))
    def test_value_always_in_unit_range(self, pts):
        assume(math.dist(pts[0], pts[6]) > 0.001)
        value = calculate_mouth_openness(pts).value
        assert 0.0 <= value <= 1.0

    @given(st.lists(points, max_size=11))
    def test_short_input_never_raises(self, pts):
        result = calculate_mouth_openness(pts)
        assert result.value == 0.0
        assert result.insufficient_landmarks


class TestMouthAnalyzer:
    def test_missing_lips_returns_none(self):
        assert MouthAnalyzer().analyze(None) is None

    def test_delegates_to_calculation(self):
        result = MouthAnalyzer().analyze(_lips(gap=0.1, width=0.2))
        assert result.value == pytest.approx(0.5)
