"""Image quality gating for enrollment and lookup photos.

Gates run in a fixed order and stop at the first failure:
face count, detector confidence, face size, centering, head tilt.
Rejections are returned as verdicts, never raised.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..models.face import DetectionResult, Point
from .detector import DetectionOptions, FaceDetector

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    NO_FACE = "no face detected"
    MULTIPLE_FACES = "multiple faces detected"
    LOW_CONFIDENCE = "insufficient image quality"
    FACE_TOO_SMALL = "face too small, move closer"
    NOT_CENTERED = "face not centered"
    TOO_TILTED = "face too tilted, keep head level"

    @property
    def message(self) -> str:
        """Guidance shown to the visitor at the front desk."""
        return GUIDANCE[self]


GUIDANCE: Dict[RejectReason, str] = {
    RejectReason.NO_FACE: "Nenhum rosto detectado na imagem",
    RejectReason.MULTIPLE_FACES: "Múltiplos rostos detectados. Use uma imagem com apenas um rosto",
    RejectReason.LOW_CONFIDENCE: "Qualidade da imagem insuficiente. Tente uma foto mais nítida",
    RejectReason.FACE_TOO_SMALL: "Rosto muito pequeno na imagem. Aproxime-se mais da câmera",
    RejectReason.NOT_CENTERED: "Rosto não está centralizado na imagem",
    RejectReason.TOO_TILTED: "Rosto está muito inclinado. Mantenha a cabeça nivelada",
}


@dataclass
class QualityOptions:
    min_confidence: float = 0.5
    min_face_ratio: float = 0.05
    max_center_distance: float = 0.25
    max_face_angle: float = 15.0  # degrees


@dataclass
class QualityVerdict:
    valid: bool
    reason: Optional[RejectReason] = None
    face_count: int = 0
    confidence: Optional[float] = None
    face_ratio: Optional[float] = None
    center_distance: Optional[float] = None
    angle: Optional[float] = None
    threshold: Optional[float] = None
    detections: List[DetectionResult] = field(default_factory=list, repr=False)

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None


def face_ratio(detection: DetectionResult, width: int, height: int) -> float:
    return detection.box.area / float(width * height)


def center_distance(detection: DetectionResult, width: int, height: int) -> float:
    """Offset of the face centre from the image centre, normalised per axis."""
    cx, cy = detection.box.center
    dx = abs(cx - width / 2) / width
    dy = abs(cy - height / 2) / height
    return math.sqrt(dx * dx + dy * dy)


def _centroid(points: Sequence[Point]) -> np.ndarray:
    return np.asarray(points, dtype=np.float64).mean(axis=0)


def tilt_angle(detection: DetectionResult) -> Optional[float]:
    """Roll of the eye line in degrees, or None without landmarks for both eyes."""
    left_eye, right_eye = detection.eye_points()
    if not left_eye or not right_eye:
        return None
    left = _centroid(left_eye)
    right = _centroid(right_eye)
    return math.degrees(math.atan2(right[1] - left[1], right[0] - left[0]))


class QualityValidator:
    """Decides whether a captured image is usable for enrollment or lookup."""

    def __init__(self, detector: FaceDetector):
        self.detector = detector

    def validate_image_quality(self, image: np.ndarray,
                               options: Optional[QualityOptions] = None,
                               detection: Optional[DetectionOptions] = None) -> QualityVerdict:
        """Run detection on `image` and apply the quality gates.

        Without `detection` options, faces scoring at least `min_confidence`
        are kept even below the default detector floor.

        Raises:
            ExtractionError: If detection itself fails.
        """
        options = options or QualityOptions()
        if detection is None:
            default_floor = DetectionOptions().score_threshold
            detection = DetectionOptions(score_threshold=min(options.min_confidence, default_floor))
        detections = self.detector.detect_faces(image, detection)
        height, width = image.shape[:2]
        verdict = self.evaluate(detections, width, height, options)
        if not verdict.valid:
            logger.info(f"Image rejected: {verdict.reason.value}")
        return verdict

    def evaluate(self, detections: List[DetectionResult], width: int, height: int,
                 options: QualityOptions) -> QualityVerdict:
        """Apply the gates to detections already computed for a width x height image."""
        count = len(detections)
        if count == 0:
            return QualityVerdict(valid=False, reason=RejectReason.NO_FACE, detections=detections)
        if count > 1:
            return QualityVerdict(valid=False, reason=RejectReason.MULTIPLE_FACES,
                                  face_count=count, detections=detections)

        face = detections[0]
        if face.score < options.min_confidence:
            return QualityVerdict(valid=False, reason=RejectReason.LOW_CONFIDENCE, face_count=1,
                                  confidence=face.score, threshold=options.min_confidence,
                                  detections=detections)

        ratio = face_ratio(face, width, height)
        if ratio < options.min_face_ratio:
            return QualityVerdict(valid=False, reason=RejectReason.FACE_TOO_SMALL, face_count=1,
                                  confidence=face.score, face_ratio=ratio,
                                  threshold=options.min_face_ratio, detections=detections)

        offset = center_distance(face, width, height)
        if offset > options.max_center_distance:
            return QualityVerdict(valid=False, reason=RejectReason.NOT_CENTERED, face_count=1,
                                  confidence=face.score, face_ratio=ratio, center_distance=offset,
                                  threshold=options.max_center_distance, detections=detections)

        angle = tilt_angle(face)
        if angle is not None and abs(angle) > options.max_face_angle:
            return QualityVerdict(valid=False, reason=RejectReason.TOO_TILTED, face_count=1,
                                  confidence=face.score, face_ratio=ratio, center_distance=offset,
                                  angle=angle, threshold=options.max_face_angle,
                                  detections=detections)

        return QualityVerdict(valid=True, face_count=1, confidence=face.score, face_ratio=ratio,
                              center_distance=offset, angle=angle, detections=detections)
