"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

from typing import List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import FaceLandmarks

# 关键点索引常量，p1/p4 为眼角
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]

# 内唇轮廓 12 点：0 左嘴角，3 上唇中点，6 右嘴角，9 下唇中点
LIP_INDICES = [78, 80, 82, 13, 312, 310, 308, 318, 317, 14, 87, 88]


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测人脸关键点，输出归一化坐标"""

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
        face_mesh=None,
    ):
        """初始化 MediaPipe FaceMesh，face_mesh 可注入已有实例"""
        if face_mesh is None:
            face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=max_num_faces,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=0.5,
                refine_landmarks=False,
            )
        self._face_mesh = face_mesh

    def detect(self, frame: np.ndarray) -> Optional[FaceLandmarks]:
        """
        检测单帧图像中的人脸关键点。

        坐标按图像长边归一化，横纵比例一致，开合度计算不受画面宽高比影响。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            FaceLandmarks 对象；未检测到人脸时返回 None
        """
        h, w = frame.shape[:2]
        scale = float(max(h, w))

        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        face = results.multi_face_landmarks[0]

        all_landmarks = [
            (lm.x * w / scale, lm.y * h / scale) for lm in face.landmark
        ]

        return FaceLandmarks(
            left_eye=self._select(all_landmarks, LEFT_EYE_INDICES),
            right_eye=self._select(all_landmarks, RIGHT_EYE_INDICES),
            lips=self._select(all_landmarks, LIP_INDICES),
            all_landmarks=all_landmarks,
        )

    @staticmethod
    def _select(points: List[Tuple[float, float]], indices: List[int]) -> Optional[List[Tuple[float, float]]]:
        """按索引取点，关键点数量不足时返回 None"""
        if max(indices) >= len(points):
            return None
        return [points[i] for i in indices]

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
