"""DisplayRenderer 单元测试"""

import numpy as np
import pytest

from display.renderer import DisplayRenderer, format_duration, format_value
from models.data_models import (
    AlertDecision,
    AlertLevel,
    FaceLandmarks,
    FrameObservation,
    FrameReport,
    LiveStats,
    SignalStates,
    TrackerUpdate,
)


# --------------- helpers ---------------

def _make_frame(w=640, h=480):
    """创建黑色测试帧。"""
    return np.zeros((h, w, 3), dtype=np.uint8)


def _report(level=AlertLevel.NORMAL, face_present=True, eye=0.3, mouth=0.01, score=0.0):
    observation = FrameObservation(
        face_present=face_present,
        eye_openness=eye if face_present else None,
        mouth_openness=mouth if face_present else None,
        timestamp=0.0,
    )
    decision = AlertDecision(
        level=level, trigger_alert=level == AlertLevel.DANGER, fatigue_score=score,
    )
    return FrameReport(
        observation=observation,
        update=TrackerUpdate(signals=SignalStates()),
        decision=decision,
    )


def _live(active=True):
    return LiveStats(
        session_active=active, session_duration=3900.0,
        total_blinks=12, total_yawns=2,
        fatigue_score=0.1, alert_level=AlertLevel.NORMAL,
    )


def _simple_landmarks():
    """生成简单的 FaceLandmarks（归一化坐标）用于测试。"""
    pts = [(0.3 + (i % 20) * 0.02, 0.3 + (i // 20) * 0.01) for i in range(468)]
    return FaceLandmarks(
        left_eye=pts[:6],
        right_eye=pts[6:12],
        lips=pts[12:24],
        all_landmarks=pts,
    )


# --------------- format helpers ---------------

class TestFormatValue:
    def test_two_decimal_places(self):
        assert format_value(0.123456) == "0.12"

    def test_zero(self):
        assert format_value(0.0) == "0.00"

    def test_integer_value(self):
        assert format_value(1.0) == "1.00"

    def test_none(self):
        assert format_value(None) == "--"


class TestFormatDuration:
    @pytest.mark.parametrize("seconds,text", [
        (0, "0m"),
        (59, "0m"),
        (600, "10m"),
        (3600, "1h 0m"),
        (3900, "1h 5m"),
    ])
    def test_format(self, seconds, text):
        assert format_duration(seconds) == text


# --------------- DisplayRenderer init tests ---------------

class TestDisplayRendererInit:
    def test_init_fallback_no_font(self):
        """字体不存在时应回退到 OpenCV 模式（不抛异常）。"""
        renderer = DisplayRenderer(font_path="nonexistent_font_xyz")
        assert renderer is not None

    def test_init_default(self):
        """默认初始化不应抛异常。"""
        renderer = DisplayRenderer()
        assert renderer is not None


# --------------- render tests ---------------

class TestRender:
    def setup_method(self):
        # 强制使用 OpenCV 回退模式以保证跨平台测试一致性
        self.renderer = DisplayRenderer(font_path="nonexistent_font_xyz")
        self.renderer._use_pil = False

    def test_render_returns_ndarray(self):
        frame = _make_frame()
        result = self.renderer.render(frame, None, _report())
        assert isinstance(result, np.ndarray)
        assert result.shape == frame.shape

    def test_render_does_not_modify_original(self):
        frame = _make_frame()
        original = frame.copy()
        self.renderer.render(frame, None, _report(AlertLevel.DANGER), _live())
        np.testing.assert_array_equal(frame, original)

    def test_render_with_landmarks(self):
        frame = _make_frame()
        result = self.renderer.render(frame, _simple_landmarks(), _report())
        # 关键点区域应有绿色像素
        h, w = result.shape[:2]
        region = result[int(0.3 * w):int(0.36 * w), int(0.3 * w):int(0.7 * w), 1]
        assert region.max() == 255

    def test_render_danger_red_pixels(self):
        """DANGER 时画面中央出现红色警告 (BGR: 0,0,255)。"""
        result = self.renderer.render(_make_frame(), None, _report(AlertLevel.DANGER, score=0.8))
        h, w = result.shape[:2]
        center = result[h // 3: 2 * h // 3, :, 2]
        assert center.max() == 255

    def test_render_normal_no_red_warning(self):
        """正常状态中央区域不应有红色警告。"""
        result = self.renderer.render(_make_frame(), None, _report())
        h, w = result.shape[:2]
        center = result[h // 3: 2 * h // 3, w // 4: 3 * w // 4, 2]
        assert center.max() < 200

    def test_render_warning_has_no_banner(self):
        result = self.renderer.render(_make_frame(), None, _report(AlertLevel.WARNING))
        h, w = result.shape[:2]
        center = result[h // 3: 2 * h // 3, w // 4: 3 * w // 4]
        assert center.max() == 0

    def test_render_without_face(self):
        result = self.renderer.render(_make_frame(), None, _report(face_present=False))
        assert result.sum() > 0

    def test_trip_panel_drawn_when_session_active(self):
        with_trip = self.renderer.render(_make_frame(), None, _report(), _live(active=True))
        without_trip = self.renderer.render(_make_frame(), None, _report(), _live(active=False))
        h, w = with_trip.shape[:2]
        assert with_trip[:100, w - 200:].sum() > 0
        assert without_trip[:100, w - 200:].sum() == 0
