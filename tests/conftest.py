"""
Pytest configuration and fixtures
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from facedesk.config import Settings
from facedesk.core.detector import FaceDetector
from facedesk.core.service import FaceRecognitionService
from facedesk.models.face import DESCRIPTOR_LENGTH, FaceBox


def make_descriptor(value: float = 0.1, **offsets: float) -> np.ndarray:
    """128-d descriptor filled with `value`; `d0=0.3` adds 0.3 to component 0."""
    descriptor = np.full(DESCRIPTOR_LENGTH, value, dtype=np.float64)
    for name, offset in offsets.items():
        descriptor[int(name[1:])] += offset
    return descriptor


def level_eyes(y: float = 0.4) -> Dict[str, List[Tuple[float, float]]]:
    return {
        'left_eye': [(0.40, y - 0.01), (0.42, y), (0.40, y + 0.01)],
        'right_eye': [(0.60, y - 0.01), (0.62, y), (0.60, y + 0.01)],
    }


@dataclass
class FakeFace:
    """A face defined relative to the image size: (x, y, width, height) in [0, 1]."""
    box: Tuple[float, float, float, float] = (0.35, 0.3, 0.3, 0.4)
    score: float = 0.95
    landmarks: Dict[str, List[Tuple[float, float]]] = field(default_factory=level_eyes)
    descriptor: np.ndarray = field(default_factory=make_descriptor)


class FakeBackend:
    """Stands in for the dlib backend; faces scale with the image it receives."""

    def __init__(self, faces: Optional[List[FakeFace]] = None,
                 load_error: Optional[Exception] = None,
                 locate_error: Optional[Exception] = None):
        self.faces = faces if faces is not None else [FakeFace()]
        self.load_error = load_error
        self.locate_error = locate_error
        self.load_calls = 0
        self.locate_shapes: List[Tuple[int, ...]] = []
        self.locate_args: List[Tuple[int, float]] = []

    def load(self) -> None:
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error

    def locate(self, image, input_size, score_threshold):
        self.locate_shapes.append(image.shape)
        self.locate_args.append((input_size, score_threshold))
        if self.locate_error is not None:
            raise self.locate_error
        height, width = image.shape[:2]
        return [
            (FaceBox(x=f.box[0] * width, y=f.box[1] * height,
                     width=f.box[2] * width, height=f.box[3] * height), f.score)
            for f in self.faces
        ]

    def describe(self, image, boxes):
        height, width = image.shape[:2]
        described = []
        for face in self.faces[:len(boxes)]:
            landmarks = {
                name: [(x * width, y * height) for x, y in points]
                for name, points in face.landmarks.items()
            }
            described.append((landmarks, face.descriptor))
        return described


@pytest.fixture
def image() -> np.ndarray:
    """Square RGB test image"""
    return np.zeros((400, 400, 3), dtype=np.uint8)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def detector(backend: FakeBackend) -> FaceDetector:
    return FaceDetector(backend)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(warmup=False, cache_capacity=50, tolerance=0.6)


@pytest.fixture
def service(test_settings: Settings, backend: FakeBackend) -> FaceRecognitionService:
    return FaceRecognitionService(test_settings, backend=backend)
