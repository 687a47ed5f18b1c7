"""Face detection and descriptor extraction.

Large images are downscaled before inference to bound latency. Every box and
landmark point returned by this module is mapped back into the coordinate
space of the image the caller passed in.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from typing_extensions import Protocol

from ..models.face import DetectionResult, FaceBox, FaceEncoding, Landmarks
from .errors import (
    ExtractionError,
    FaceRecognitionError,
    LowConfidenceError,
    MultipleFacesDetectedError,
    NoFaceDetectedError,
)

logger = logging.getLogger(__name__)

SMALL_FACE_RATIO = 0.05


class FaceBackend(Protocol):
    """Model operations the detector needs."""

    def load(self) -> None: ...

    def locate(self, image: np.ndarray, input_size: int,
               score_threshold: float) -> List[Tuple[FaceBox, float]]: ...

    def describe(self, image: np.ndarray,
                 boxes: Sequence[FaceBox]) -> List[Tuple[Landmarks, np.ndarray]]: ...


@dataclass
class DetectionOptions:
    """Detection parameters.

    Attributes:
        input_size: Longest side of the image fed to the face locator.
        score_threshold: Minimum detector confidence in [0, 1] for a face to be kept.
        max_dimension: Longest side above which images are downscaled first.
    """
    input_size: int = 320
    score_threshold: float = 0.5
    max_dimension: int = 640


@dataclass
class ExtractionOptions:
    detection: DetectionOptions = field(default_factory=DetectionOptions)
    min_confidence: float = 0.5


def check_image(image: np.ndarray) -> Tuple[int, int]:
    """Return (height, width) of a decoded raster, rejecting anything else."""
    if not isinstance(image, np.ndarray):
        raise ExtractionError(f"Unsupported image source: {type(image).__name__}")
    if image.dtype != np.uint8 or image.ndim not in (2, 3):
        raise ExtractionError(f"Unsupported image format: dtype={image.dtype}, shape={image.shape}")
    if image.ndim == 3 and image.shape[2] != 3:
        raise ExtractionError(f"Expected 3 colour channels, got {image.shape[2]}")
    height, width = image.shape[:2]
    if height == 0 or width == 0:
        raise ExtractionError("Image has no pixels")
    return height, width


def downscale(image: np.ndarray, max_dimension: int) -> Tuple[np.ndarray, float]:
    """Shrink `image` so its longest side is at most `max_dimension`.

    Returns:
        (working image, scale) where working = original * scale.
    """
    height, width = image.shape[:2]
    longest = max(height, width)
    if longest <= max_dimension:
        return image, 1.0
    scale = max_dimension / longest
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    logger.debug(f"Resized image from {width}x{height} to {size[0]}x{size[1]}")
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA), scale


def _rescale_landmarks(landmarks: Landmarks, factor: float) -> Landmarks:
    return {
        name: [(x * factor, y * factor) for x, y in points]
        for name, points in landmarks.items()
    }


class FaceDetector:
    """Turns a decoded image into DetectionResult records."""

    def __init__(self, backend: FaceBackend):
        self.backend = backend

    def detect_faces(self, image: np.ndarray,
                     options: Optional[DetectionOptions] = None) -> List[DetectionResult]:
        """Detect every face in `image`.

        Args:
            image: uint8 RGB or grayscale array.
            options: Detection parameters, defaults when None.

        Returns:
            Detections sorted by descending score. Empty when no face is found.

        Raises:
            ExtractionError: If the image is unusable or the model pipeline fails.
        """
        options = options or DetectionOptions()
        check_image(image)

        try:
            working, scale = downscale(image, options.max_dimension)
            located = [
                (box, score)
                for box, score in self.backend.locate(working, options.input_size, options.score_threshold)
                if score >= options.score_threshold
            ]
            described = self.backend.describe(working, [box for box, _ in located])
        except FaceRecognitionError:
            raise
        except Exception as e:
            logger.error(f"Face detection error: {e}")
            raise ExtractionError(f"Face detection failed: {e}") from e

        if len(described) != len(located):
            raise ExtractionError(
                f"Backend described {len(described)} of {len(located)} located faces"
            )

        inverse = 1.0 / scale
        results = [
            DetectionResult(
                box=box.scaled(inverse),
                score=float(score),
                landmarks=_rescale_landmarks(landmarks, inverse),
                descriptor=descriptor,
            )
            for (box, score), (landmarks, descriptor) in zip(located, described)
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def extract_face_encoding(self, image: np.ndarray,
                              options: Optional[ExtractionOptions] = None) -> FaceEncoding:
        """Extract the descriptor of the single face in `image`.

        Raises:
            NoFaceDetectedError: If no face is found.
            MultipleFacesDetectedError: If more than one face is found.
            LowConfidenceError: If the face scores below `min_confidence`.
            ExtractionError: If the model pipeline fails.
        """
        options = options or ExtractionOptions()
        detections = self.detect_faces(image, options.detection)

        if not detections:
            raise NoFaceDetectedError("No face detected in image")
        if len(detections) > 1:
            raise MultipleFacesDetectedError(
                f"{len(detections)} faces detected, use an image with a single face",
                count=len(detections),
            )

        detection = detections[0]
        if detection.score < options.min_confidence:
            raise LowConfidenceError(
                f"Detection confidence {detection.score:.2f} below {options.min_confidence:.2f}",
                confidence=detection.score,
                threshold=options.min_confidence,
            )

        height, width = image.shape[:2]
        face_ratio = detection.box.area / float(width * height)
        if face_ratio < SMALL_FACE_RATIO:
            logger.warning(f"Face is small in the image (ratio {face_ratio:.3f}), descriptor may be unreliable")

        return FaceEncoding(
            encoding=detection.descriptor,
            confidence=detection.score,
            box=detection.box,
            face_ratio=face_ratio,
            landmarks=detection.landmarks,
        )
