"""驾驶员疲劳监测系统入口文件"""

import argparse
import logging
import sys

import cv2

from config.detection_config import load_config
from display.renderer import DisplayRenderer, format_duration
from monitor.fatigue_monitor import TRIGGER_ALERT, TRIP_COMPLETED, FatigueMonitor


class DetectionSystem:
    """疲劳监测系统主程序，管理视频流主循环和行程开关。"""

    def __init__(self, config_path=None, sensitivity=None):
        self._cap = None
        self.face_detector = None

        self.config = load_config(config_path)
        if sensitivity is not None:
            self.config = self.config.merged({"alert_sensitivity": sensitivity})

        self.monitor = FatigueMonitor(self.config)
        self.renderer = DisplayRenderer()

        self.monitor.add_listener(TRIGGER_ALERT, self._on_trigger_alert)
        self.monitor.add_listener(TRIP_COMPLETED, self._on_trip_completed)

    def _on_trigger_alert(self, decision):
        """危险等级时的声音提示（终端响铃）。"""
        if self.config.enable_sound_alerts:
            sys.stdout.write("\a")
            sys.stdout.flush()

    @staticmethod
    def _on_trip_completed(record):
        print("=" * 50)
        print(f"行程结束  时长: {format_duration(record.duration)}")
        print(f"警告: {record.warning_count} 次  危险: {record.danger_count} 次")
        print(f"眨眼: {record.total_blinks} 次  哈欠: {record.total_yawns} 次")
        print(f"最大疲劳分数: {record.max_fatigue_score:.2f}  安全评分: {record.safety_rating:.1f}")
        print("=" * 50)

    def toggle_trip(self):
        """开始或结束行程。"""
        if self.monitor.session_active:
            self.monitor.end_session()
        else:
            self.monitor.start_session()
            print("行程开始")

    def run(self):
        """启动主检测循环。"""
        from detectors.face_detector import FaceDetector

        self._cap = cv2.VideoCapture(0)

        if not self._cap.isOpened():
            print("无法打开摄像头")
            sys.exit(1)

        self.face_detector = FaceDetector()
        if self.config.auto_start_trips:
            self.monitor.start_session()

        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """视频流处理主循环。"""
        while True:
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self.face_detector.detect(frame)
            report = self.monitor.process_landmarks(landmarks)

            rendered = self.renderer.render(
                frame, landmarks, report, self.monitor.live_stats(),
            )
            cv2.imshow("驾驶员疲劳监测", rendered)

            # q 退出，t 开始/结束行程
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("t"):
                self.toggle_trip()

    def stop(self):
        """结束进行中的行程，释放摄像头、关闭窗口和人脸检测器。"""
        self.monitor.end_session()
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        cv2.destroyAllWindows()
        if self.face_detector is not None:
            self.face_detector.close()
            self.face_detector = None


def main():
    parser = argparse.ArgumentParser(description="驾驶员疲劳监测系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 阈值配置文件路径",
    )
    parser.add_argument(
        "--sensitivity",
        type=float,
        default=None,
        help="警报灵敏度 0~1，覆盖配置文件中的值",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = DetectionSystem(config_path=args.config, sensitivity=args.sensitivity)
    system.run()


if __name__ == "__main__":
    main()
