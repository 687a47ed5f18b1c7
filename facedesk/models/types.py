"""Data models and type definitions"""
from typing import Dict, List, Optional
from typing_extensions import NotRequired, TypedDict

class Box(TypedDict):
    x: float
    y: float
    width: float
    height: float

class DetectedFace(TypedDict):
    box: Box
    confidence: float
    landmarks: Dict[str, List[List[float]]]

class GalleryItem(TypedDict):
    id: str
    descriptor: NotRequired[Optional[List[float]]]

class DetectFacesRequest(TypedDict):
    image: str
    annotate: NotRequired[bool]

class DetectFacesResponse(TypedDict):
    faces: List[DetectedFace]
    annotatedImage: NotRequired[str]

class ValidateImageRequest(TypedDict):
    image: str
    minConfidence: NotRequired[float]
    minFaceRatio: NotRequired[float]
    maxCenterDistance: NotRequired[float]
    maxFaceAngle: NotRequired[float]

class QualityVerdictResponse(TypedDict):
    valid: bool
    reason: Optional[str]
    message: Optional[str]
    faceCount: int
    confidence: Optional[float]
    faceRatio: Optional[float]
    centerDistance: Optional[float]
    angle: Optional[float]
    threshold: Optional[float]

class ExtractEncodingRequest(TypedDict):
    image: str
    imageKey: NotRequired[str]
    useCache: NotRequired[bool]

class EncodingResponse(TypedDict):
    encoding: List[float]
    confidence: float
    box: Box
    faceRatio: float

class CompareFacesRequest(TypedDict):
    descriptorA: List[float]
    descriptorB: List[float]
    tolerance: NotRequired[float]

class ComparisonResponse(TypedDict):
    isMatch: bool
    distance: float
    similarity: float
    confidence: float
    tolerance: float

class MatchFaceRequest(TypedDict):
    gallery: List[GalleryItem]
    descriptor: NotRequired[List[float]]
    image: NotRequired[str]
    imageKey: NotRequired[str]
    tolerance: NotRequired[float]

class MatchCandidateResponse(TypedDict):
    id: str
    distance: float
    similarity: float
    confidence: float

class MatchResponse(TypedDict):
    id: str
    isMatch: bool
    distance: Optional[float]
    similarity: float
    confidence: float
    tolerance: float
    matches: List[MatchCandidateResponse]
    ambiguityScore: Optional[float]

class ToleranceRequest(TypedDict):
    tolerance: float

class ToleranceResponse(TypedDict):
    tolerance: float

class ErrorResponse(TypedDict):
    error: str
    code: str
    traceback: NotRequired[Optional[str]]
