"""Core face pipeline records.

Geometry is always expressed in original-image pixel coordinates.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

DESCRIPTOR_LENGTH = 128
UNKNOWN_ID = "Unknown"

Point = Tuple[float, float]
Landmarks = Dict[str, List[Point]]


@dataclass(frozen=True)
class FaceBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def scaled(self, factor: float) -> "FaceBox":
        """Return the box with every coordinate multiplied by `factor`."""
        return FaceBox(
            x=self.x * factor,
            y=self.y * factor,
            width=self.width * factor,
            height=self.height * factor,
        )

    def to_css(self) -> Tuple[int, int, int, int]:
        """Return (top, right, bottom, left) integer coordinates."""
        return (
            int(round(self.y)),
            int(round(self.x + self.width)),
            int(round(self.y + self.height)),
            int(round(self.x)),
        )


@dataclass
class DetectionResult:
    """One detected face: geometry, detector score, landmarks and descriptor."""
    box: FaceBox
    score: float
    landmarks: Landmarks
    descriptor: np.ndarray

    def eye_points(self) -> Tuple[List[Point], List[Point]]:
        return self.landmarks.get('left_eye') or [], self.landmarks.get('right_eye') or []


@dataclass
class FaceEncoding:
    """A single-face extraction result, ready to store or query with."""
    encoding: np.ndarray
    confidence: float
    box: FaceBox
    face_ratio: float
    landmarks: Landmarks = field(default_factory=dict)


@dataclass
class GalleryEntry:
    id: str
    descriptor: Optional[np.ndarray]


@dataclass
class FaceComparison:
    is_match: bool
    distance: float
    similarity: float
    confidence: float
    tolerance: float


@dataclass
class MatchCandidate:
    id: str
    distance: float
    similarity: float
    confidence: float


@dataclass
class MatchResult:
    id: str
    is_match: bool
    distance: float
    similarity: float
    confidence: float
    tolerance: float
    matches: List[MatchCandidate] = field(default_factory=list)
    ambiguity_score: Optional[float] = None

    @property
    def is_ambiguous(self) -> bool:
        return self.ambiguity_score is not None

    @classmethod
    def no_match(cls, tolerance: float) -> "MatchResult":
        return cls(
            id=UNKNOWN_ID,
            is_match=False,
            distance=math.inf,
            similarity=0.0,
            confidence=0.0,
            tolerance=tolerance,
        )
