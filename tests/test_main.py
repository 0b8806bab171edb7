"""Tests for main.py DetectionSystem - config handling, trip toggling and shutdown."""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

# Mock mediapipe before importing main to avoid hanging
_mp_mock = MagicMock()
sys.modules.setdefault("mediapipe", _mp_mock)
sys.modules.setdefault("mediapipe.solutions", _mp_mock.solutions)
sys.modules.setdefault("mediapipe.solutions.face_mesh", _mp_mock.solutions.face_mesh)

from config.detection_config import DetectionConfig  # noqa: E402
from main import DetectionSystem  # noqa: E402
from models.data_models import AlertDecision, AlertLevel  # noqa: E402


class TestDetectionSystemInit:
    """Test DetectionSystem initialization."""

    def test_default_init(self):
        system = DetectionSystem()
        assert system.config == DetectionConfig()
        assert system.monitor.session_active is False
        assert system.face_detector is None

    def test_init_with_config(self, tmp_path):
        cfg = {"eye_closed_duration": 3.0, "yawn_threshold": 0.06}
        cfg_file = tmp_path / "test_config.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        system = DetectionSystem(config_path=str(cfg_file))
        assert system.config.eye_closed_duration == 3.0
        assert system.monitor.tracker.config.yawn_threshold == pytest.approx(0.06)
        assert system.monitor.evaluator.config.eye_closed_duration == pytest.approx(3.0)

    def test_missing_config_falls_back(self, capsys):
        system = DetectionSystem(config_path="/nonexistent/path.json")
        assert system.config == DetectionConfig()
        assert "配置文件不存在" in capsys.readouterr().out

    def test_sensitivity_overrides_config(self, tmp_path):
        cfg_file = tmp_path / "cfg.json"
        cfg_file.write_text(json.dumps({"alert_sensitivity": 0.2}), encoding="utf-8")

        system = DetectionSystem(config_path=str(cfg_file), sensitivity=1.0)
        assert system.config.alert_sensitivity == 1.0
        assert system.monitor.evaluator.config.eye_closed_duration == pytest.approx(2.0 / 1.5)


class TestTripToggle:
    def test_toggle_starts_and_ends_trip(self, capsys):
        system = DetectionSystem()
        system.toggle_trip()
        assert system.monitor.session_active is True

        system.toggle_trip()
        assert system.monitor.session_active is False
        assert len(system.monitor.trip_history) == 1
        out = capsys.readouterr().out
        assert "行程开始" in out
        assert "安全评分" in out


class TestSoundAlert:
    def test_bell_when_enabled(self, capsys):
        system = DetectionSystem()
        decision = AlertDecision(level=AlertLevel.DANGER, trigger_alert=True, fatigue_score=0.9)
        system._on_trigger_alert(decision)
        assert "\a" in capsys.readouterr().out

    def test_silent_when_disabled(self, tmp_path, capsys):
        cfg_file = tmp_path / "quiet.json"
        cfg_file.write_text(json.dumps({"enable_sound_alerts": False}), encoding="utf-8")
        system = DetectionSystem(config_path=str(cfg_file))
        decision = AlertDecision(level=AlertLevel.DANGER, trigger_alert=True, fatigue_score=0.9)
        system._on_trigger_alert(decision)
        assert "\a" not in capsys.readouterr().out


class TestDetectionSystemStop:
    """Test DetectionSystem.stop method."""

    @patch("main.cv2.destroyAllWindows")
    def test_stop_without_camera(self, _destroy):
        """stop() should not raise even if camera was never opened."""
        system = DetectionSystem()
        system.stop()  # Should not raise

    @patch("main.cv2.destroyAllWindows")
    def test_stop_ends_active_trip(self, _destroy):
        system = DetectionSystem()
        system.monitor.start_session()
        system.stop()
        assert system.monitor.session_active is False
        assert len(system.monitor.trip_history) == 1

    @patch("main.cv2.destroyAllWindows")
    def test_stop_releases_resources(self, _destroy):
        system = DetectionSystem()
        cap = MagicMock()
        cap.isOpened.return_value = True
        detector = MagicMock()
        system._cap = cap
        system.face_detector = detector

        system.stop()

        cap.release.assert_called_once()
        detector.close.assert_called_once()
        assert system.face_detector is None
