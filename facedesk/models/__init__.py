"""Data models and type definitions"""
from .face import (
    DESCRIPTOR_LENGTH,
    UNKNOWN_ID,
    DetectionResult,
    FaceBox,
    FaceComparison,
    FaceEncoding,
    GalleryEntry,
    MatchCandidate,
    MatchResult,
)

__all__ = [
    'DESCRIPTOR_LENGTH',
    'UNKNOWN_ID',
    'DetectionResult',
    'FaceBox',
    'FaceComparison',
    'FaceEncoding',
    'GalleryEntry',
    'MatchCandidate',
    'MatchResult',
]
