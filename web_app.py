"""Flask Web 服务 - 驾驶员疲劳监测系统"""

import datetime
import threading
import time

import cv2
from flask import Flask, Response, jsonify, request

from config.detection_config import DetectionConfig, load_config
from display.renderer import DisplayRenderer
from models.data_models import AlertLevel
from monitor.fatigue_monitor import (
    LEVEL_CHANGED,
    TRIGGER_ALERT,
    TRIP_COMPLETED,
    YAWN,
    FatigueMonitor,
)
from trips.trip_aggregator import fatigue_band, safety_band

app = Flask(__name__)


class WebDetectionSystem:
    """Web 版监测系统，支持 MJPEG 视频流推送和实时数据 API。"""

    MAX_LOG_ENTRIES = 200
    # 两次危险日志之间的最短间隔（秒），避免每帧刷屏
    ALERT_LOG_INTERVAL = 5.0

    def __init__(self, config=None):
        self._cap = None
        self._thread = None
        self._running = False
        self._lock = threading.Lock()
        self._latest_frame = None
        self._latest_data = {
            "face_detected": False,
            "eye_openness": None, "mouth_openness": None,
            "alert_level": AlertLevel.NORMAL.value,
            "status": AlertLevel.NORMAL.display_text,
            "fatigue_score": 0.0, "reasons": [],
        }
        self._logs = []
        self._log_lock = threading.Lock()
        self._last_alert_log = 0.0
        self.face_detector = None
        self.renderer = DisplayRenderer()

        self.monitor = FatigueMonitor(config or DetectionConfig())
        self.monitor.add_listener(LEVEL_CHANGED, self._on_level_changed)
        self.monitor.add_listener(TRIGGER_ALERT, self._on_trigger_alert)
        self.monitor.add_listener(TRIP_COMPLETED, self._on_trip_completed)
        self.monitor.add_listener(YAWN, lambda: self._add_log("info", "检测到一次哈欠"))

    @property
    def running(self):
        return self._running

    def start(self):
        """启动摄像头和处理线程。"""
        if self._running:
            return True
        self._cap = cv2.VideoCapture(0)
        if not self._cap.isOpened():
            self._add_log("danger", "无法打开摄像头")
            return False
        if self.face_detector is None:
            from detectors.face_detector import FaceDetector
            self.face_detector = FaceDetector()
        self._running = True
        self._add_log("info", "系统启动，摄像头已开启")
        if self.monitor.config.auto_start_trips:
            self.start_trip()
        self._thread = threading.Thread(target=self._process_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self):
        """停止检测，进行中的行程一并结束。"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        self.monitor.end_session()
        self.monitor.reset()
        self._add_log("info", "系统已停止")

    def start_trip(self):
        ok = self.monitor.start_session()
        if ok:
            self._add_log("info", "行程开始")
        return ok

    def stop_trip(self):
        return self.monitor.end_session()

    def _process_loop(self):
        """后台处理循环。"""
        while self._running:
            if not self._cap or not self._cap.isOpened():
                break
            ret, frame = self._cap.read()
            if not ret:
                continue

            landmarks = self.face_detector.detect(frame)
            report = self.monitor.process_landmarks(landmarks)
            live = self.monitor.live_stats()
            rendered = self.renderer.render(frame, landmarks, report, live)

            observation = report.observation
            decision = report.decision
            data = {
                "face_detected": observation.face_present,
                "eye_openness": observation.eye_openness,
                "mouth_openness": observation.mouth_openness,
                "alert_level": decision.level.value,
                "status": decision.level.display_text,
                "fatigue_score": round(decision.fatigue_score, 4),
                "fatigue_band": fatigue_band(decision.fatigue_score),
                "reasons": decision.reasons,
                "eyes_closed": report.update.signals.eyes_closed.active,
                "eyes_closed_duration": report.update.signals.eyes_closed.duration,
                "yawning": report.update.signals.yawning.active,
                "yawn_duration": report.update.signals.yawning.duration,
                "face_absent": report.update.signals.face_absent.active,
            }

            _, jpeg = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            with self._lock:
                self._latest_data = data
                self._latest_frame = jpeg.tobytes()

    # ---- 监听回调 ----

    def _on_level_changed(self, old_level, new_level):
        if new_level == AlertLevel.WARNING:
            self._add_log("warning", f"出现疲劳迹象 ({old_level.short_text} -> {new_level.short_text})")
        elif new_level == AlertLevel.NORMAL:
            self._add_log("info", "状态恢复正常")

    def _on_trigger_alert(self, decision):
        now = time.time()
        if now - self._last_alert_log < self.ALERT_LOG_INTERVAL:
            return
        self._last_alert_log = now
        reasons = ", ".join(decision.reasons)
        self._add_log("danger", f"疲劳驾驶警告！原因: {reasons}")

    def _on_trip_completed(self, record):
        self._add_log(
            "info",
            f"行程结束，时长 {record.duration:.0f} 秒，安全评分 {record.safety_rating:.1f}",
        )

    # ---- 日志与数据 ----

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            data = dict(self._latest_data)
        data["running"] = self._running
        data["trip"] = self.monitor.live_stats().to_dict()
        return data

    def get_stats(self):
        summary = self.monitor.history_summary()
        return {
            "daily": self.monitor.daily_stats.to_dict(),
            "daily_safety_score": self.monitor.daily_safety_score(),
            "history": {
                "trip_count": summary.trip_count,
                "total_duration": summary.total_duration,
                "average_safety_rating": summary.average_safety_rating,
                "best_safety_rating": summary.best_safety_rating,
                "improvement_rate": summary.improvement_rate,
                "safety_band": safety_band(summary.average_safety_rating),
            },
        }

    def get_trips(self):
        return [trip.to_dict() for trip in self.monitor.trip_history]

    def update_config(self, overrides):
        """动态更新阈值配置，时序信号重新开始计算。"""
        config = self.monitor.update_config_overrides(overrides)
        self._add_log("info", "配置已更新")
        return config


# 全局监测系统实例
system = WebDetectionSystem()


# ---- Flask 路由 ----

@app.route("/")
def index():
    return jsonify({"name": "driver-alertness-monitor", "running": system.running})


@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "摄像头启动成功" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "检测已停止"})


@app.route("/api/trip/start", methods=["POST"])
def api_trip_start():
    ok = system.start_trip()
    return jsonify({"success": ok, "message": "行程开始" if ok else "已有进行中的行程"})


@app.route("/api/trip/stop", methods=["POST"])
def api_trip_stop():
    record = system.stop_trip()
    if record is None:
        return jsonify({"success": False, "message": "没有进行中的行程"})
    return jsonify({"success": True, "trip": record.to_dict()})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/stats")
def api_stats():
    return jsonify(system.get_stats())


@app.route("/api/trips")
def api_trips():
    return jsonify({"trips": system.get_trips()})


@app.route("/api/config", methods=["GET", "POST"])
def api_config():
    if request.method == "GET":
        return jsonify(system.monitor.config.to_dict())
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "配置格式错误"}), 400
    try:
        config = system.update_config(data)
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return jsonify({"success": True, "message": "配置已更新", "config": config.to_dict()})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/video_feed")
def video_feed():
    def generate():
        while True:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.03)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    import argparse
    import logging

    parser = argparse.ArgumentParser(description="驾驶员疲劳监测 Web 服务")
    parser.add_argument("--config", type=str, default=None, help="JSON 阈值配置文件路径")
    parser.add_argument("--port", type=int, default=5000)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    system.update_config(load_config(args.config).to_dict())
    app.run(host="0.0.0.0", port=args.port, debug=False, threaded=True)
