"""Core face detection, quality gating and matching functionality"""
from .cache import DescriptorCache
from .detector import DetectionOptions, ExtractionOptions, FaceDetector
from .matcher import FaceMatcher, compare_faces, find_best_match
from .quality import QualityOptions, QualityValidator, QualityVerdict, RejectReason
from .service import FaceRecognitionService

__all__ = [
    'DescriptorCache',
    'DetectionOptions',
    'ExtractionOptions',
    'FaceDetector',
    'FaceMatcher',
    'compare_faces',
    'find_best_match',
    'QualityOptions',
    'QualityValidator',
    'QualityVerdict',
    'RejectReason',
    'FaceRecognitionService'
]
