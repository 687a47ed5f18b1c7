"""Face model backend built on dlib and face_recognition.

The HOG frontal face detector provides boxes and SVM scores, the 68-point
shape predictor provides landmarks and the ResNet model provides 128-d
descriptors. Importing this module loads dlib, so the service imports it lazily.
"""
import logging
import math
import os
from typing import List, Sequence, Tuple

import cv2
import dlib
import face_recognition
import face_recognition_models
import numpy as np

from ..models.face import FaceBox, Landmarks
from .errors import ModelLoadError

logger = logging.getLogger(__name__)


def score_to_confidence(score: float) -> float:
    """Map a raw detector SVM margin to [0, 1]; a margin of 0 maps to 0.5."""
    return 1.0 / (1.0 + math.exp(-score))


def confidence_to_score(confidence: float) -> float:
    """Inverse of score_to_confidence, clamped to a finite margin."""
    confidence = min(max(confidence, 1e-3), 1 - 1e-3)
    return math.log(confidence / (1.0 - confidence))


class DlibFaceBackend:
    """Runs detection, landmark and descriptor models on RGB/grayscale uint8 arrays."""

    LANDMARK_MODEL = "large"  # 68 points, includes both eye contours
    NUM_JITTERS = 1

    def __init__(self):
        self._detector = None

    def load(self) -> None:
        """Build the detector and check that the model weights are installed.

        Raises:
            ModelLoadError: If a weight file is missing or dlib cannot load it.
        """
        model_files = [
            face_recognition_models.pose_predictor_model_location(),
            face_recognition_models.pose_predictor_five_point_model_location(),
            face_recognition_models.face_recognition_model_location(),
        ]
        missing = [path for path in model_files if not os.path.exists(path)]
        if missing:
            raise ModelLoadError(f"Face model weights not found: {', '.join(missing)}")
        try:
            self._detector = dlib.get_frontal_face_detector()
        except RuntimeError as e:
            raise ModelLoadError(f"Failed to build face detector: {e}") from e

    def locate(self, image: np.ndarray, input_size: int,
               score_threshold: float) -> List[Tuple[FaceBox, float]]:
        """Find faces, returning boxes in `image` coordinates with [0, 1] scores.

        The detector runs on a copy resized so its longest side is `input_size`.
        """
        if self._detector is None:
            raise ModelLoadError("Backend used before load()")

        height, width = image.shape[:2]
        factor = input_size / max(height, width)
        if abs(factor - 1.0) > 1e-6:
            interpolation = cv2.INTER_AREA if factor < 1 else cv2.INTER_LINEAR
            resized = cv2.resize(
                image,
                (max(1, int(round(width * factor))), max(1, int(round(height * factor)))),
                interpolation=interpolation,
            )
        else:
            resized = image

        rects, scores, _ = self._detector.run(resized, 0, confidence_to_score(score_threshold))

        results = []
        for rect, score in zip(rects, scores):
            left = max(rect.left(), 0)
            top = max(rect.top(), 0)
            right = min(rect.right(), resized.shape[1])
            bottom = min(rect.bottom(), resized.shape[0])
            if right <= left or bottom <= top:
                continue
            box = FaceBox(x=left, y=top, width=right - left, height=bottom - top)
            results.append((box.scaled(1.0 / factor), score_to_confidence(score)))
        return results

    def describe(self, image: np.ndarray,
                 boxes: Sequence[FaceBox]) -> List[Tuple[Landmarks, np.ndarray]]:
        """Compute landmarks and a 128-d descriptor for every box."""
        if not boxes:
            return []
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        locations = [box.to_css() for box in boxes]

        landmarks = face_recognition.face_landmarks(
            image, face_locations=locations, model=self.LANDMARK_MODEL
        )
        descriptors = face_recognition.face_encodings(
            image, known_face_locations=locations, num_jitters=self.NUM_JITTERS
        )
        return [
            ({name: [(float(x), float(y)) for x, y in points] for name, points in marks.items()},
             np.asarray(descriptor, dtype=np.float64))
            for marks, descriptor in zip(landmarks, descriptors)
        ]
