"""界面渲染模块 - 在视频帧上绘制关键点、开合度、警报等级和行程计数。"""

from typing import Optional

import cv2
import numpy as np

from models.data_models import (
    AlertLevel,
    FaceLandmarks,
    FrameReport,
    LiveStats,
)


def format_value(v: Optional[float]) -> str:
    """格式化浮点数为两位小数字符串，None 显示为 --。"""
    if v is None:
        return "--"
    return f"{v:.2f}"


def format_duration(seconds: float) -> str:
    """格式化时长为 1h 5m / 12m 形式。"""
    hours = int(seconds) // 3600
    minutes = int(seconds) % 3600 // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class DisplayRenderer:
    """在视频帧上绘制检测结果、警报等级和行程计数。"""

    # 警报等级颜色 (BGR)
    _LEVEL_COLORS = {
        AlertLevel.NORMAL: (0, 255, 0),
        AlertLevel.WARNING: (0, 165, 255),
        AlertLevel.DANGER: (0, 0, 255),
    }

    # 警报等级文字
    _LEVEL_TEXT = {
        AlertLevel.NORMAL: "正常",
        AlertLevel.WARNING: "疲劳迹象",
        AlertLevel.DANGER: "危险",
    }

    def __init__(self, font_path: str = "SimHei"):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self._pil_font = None
        self._pil_font_large = None
        self._use_pil = False

        try:
            from PIL import ImageFont

            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._pil_font_large = ImageFont.truetype(font.path, 48)
                self._use_pil = True
        except (ImportError, OSError, AttributeError):
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        landmarks: Optional[FaceLandmarks],
        report: FrameReport,
        live_stats: Optional[LiveStats] = None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if landmarks is not None:
            self._draw_landmarks(output, landmarks)

        level = report.decision.level
        self._draw_info(output, report, level)

        if live_stats is not None and live_stats.session_active:
            self._draw_trip(output, live_stats)

        if level == AlertLevel.DANGER:
            self._draw_danger_warning(output)

        return output

    @staticmethod
    def _draw_landmarks(frame: np.ndarray, landmarks: FaceLandmarks) -> None:
        """绘制人脸关键点（绿色小圆点），关键点为按长边归一化的坐标。"""
        h, w = frame.shape[:2]
        scale = max(h, w)
        for x, y in landmarks.all_landmarks:
            cv2.circle(frame, (int(x * scale), int(y * scale)), 1, (0, 255, 0), -1)

    def _draw_info(self, frame: np.ndarray, report: FrameReport, level: AlertLevel) -> None:
        """在左上角绘制开合度、疲劳分数和警报等级。"""
        observation = report.observation
        eye_text = f"EYE: {format_value(observation.eye_openness)}"
        mouth_text = f"MOUTH: {format_value(observation.mouth_openness)}"
        score_text = f"FATIGUE: {format_value(report.decision.fatigue_score)}"
        color = self._LEVEL_COLORS[level]

        if self._use_pil:
            status_text = f"状态: {self._LEVEL_TEXT[level]}"
            if not observation.face_present:
                status_text += " (未检测到人脸)"
            lines = [eye_text, mouth_text, score_text, status_text]
            self._draw_pil_lines(frame, lines, x=10, y_start=30, color=color)
        else:
            status_text = f"Status: {level.short_text}"
            if not observation.face_present:
                status_text += " (no face)"
            y = 30
            for text in [eye_text, mouth_text, score_text, status_text]:
                cv2.putText(
                    frame, text, (10, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2,
                )
                y += 30

    def _draw_trip(self, frame: np.ndarray, live_stats: LiveStats) -> None:
        """在右上角绘制行程时长和眨眼/哈欠次数。"""
        h, w = frame.shape[:2]
        lines = [
            f"Trip: {format_duration(live_stats.session_duration)}",
            f"Blinks: {live_stats.total_blinks}",
            f"Yawns: {live_stats.total_yawns}",
        ]
        y = 30
        for text in lines:
            cv2.putText(
                frame, text, (w - 200, y),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 0), 2,
            )
            y += 25

    def _draw_danger_warning(self, frame: np.ndarray) -> None:
        """在画面中央显示红色大字体警告。"""
        h, w = frame.shape[:2]
        warning = "疲劳驾驶！请休息！"

        if self._use_pil:
            from PIL import Image, ImageDraw

            img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            draw = ImageDraw.Draw(img_pil)
            bbox = draw.textbbox((0, 0), warning, font=self._pil_font_large)
            text_w = bbox[2] - bbox[0]
            text_h = bbox[3] - bbox[1]
            x = (w - text_w) // 2
            y = (h - text_h) // 2
            draw.text((x, y), warning, font=self._pil_font_large, fill=(255, 0, 0))
            result = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
            frame[:] = result
        else:
            warning_en = AlertLevel.DANGER.display_text
            font_scale = 0.9
            thickness = 2
            (text_w, text_h), _ = cv2.getTextSize(
                warning_en, cv2.FONT_HERSHEY_SIMPLEX, font_scale, thickness
            )
            x = max(0, (w - text_w) // 2)
            y = (h + text_h) // 2
            cv2.putText(
                frame, warning_en, (x, y),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, (0, 0, 255), thickness,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        result = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        frame[:] = result
