"""Face pipeline API routes.

This module provides the API endpoints the front-desk UI calls: face
detection previews, photo quality validation, descriptor extraction,
descriptor comparison and returning-visitor lookup against a gallery the
caller supplies.
"""

import logging
import math
import traceback
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.errors import (
    DetectionTimeoutError,
    ExtractionError,
    FaceRecognitionError,
    ModelLoadError,
)
from ..core.quality import QualityVerdict
from ..core.service import FaceRecognitionService
from ..models.face import DetectionResult, FaceBox, FaceComparison, FaceEncoding, MatchResult
from ..models.types import (
    Box,
    CompareFacesRequest,
    ComparisonResponse,
    DetectedFace,
    DetectFacesRequest,
    DetectFacesResponse,
    EncodingResponse,
    ErrorResponse,
    ExtractEncodingRequest,
    MatchFaceRequest,
    MatchResponse,
    QualityVerdictResponse,
    ToleranceRequest,
    ToleranceResponse,
    ValidateImageRequest,
)
from ..utils.draw import DrawOptions, draw_face_detections
from ..utils.image import (
    ImageProcessingError,
    bgr_to_rgb,
    decode_base64_image,
    encode_base64_image,
    payload_digest,
)
from .dependencies import get_face_service

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


def _box(box: FaceBox) -> Box:
    return {'x': box.x, 'y': box.y, 'width': box.width, 'height': box.height}


def _detected_face(detection: DetectionResult) -> DetectedFace:
    return {
        'box': _box(detection.box),
        'confidence': detection.score,
        'landmarks': {
            name: [[x, y] for x, y in points]
            for name, points in detection.landmarks.items()
        },
    }


def _verdict(verdict: QualityVerdict) -> QualityVerdictResponse:
    return {
        'valid': verdict.valid,
        'reason': verdict.reason.value if verdict.reason else None,
        'message': verdict.message,
        'faceCount': verdict.face_count,
        'confidence': verdict.confidence,
        'faceRatio': verdict.face_ratio,
        'centerDistance': verdict.center_distance,
        'angle': verdict.angle,
        'threshold': verdict.threshold,
    }


def _encoding(encoding: FaceEncoding) -> EncodingResponse:
    return {
        'encoding': encoding.encoding.tolist(),
        'confidence': encoding.confidence,
        'box': _box(encoding.box),
        'faceRatio': encoding.face_ratio,
    }


def _comparison(comparison: FaceComparison) -> ComparisonResponse:
    return {
        'isMatch': comparison.is_match,
        'distance': comparison.distance,
        'similarity': comparison.similarity,
        'confidence': comparison.confidence,
        'tolerance': comparison.tolerance,
    }


def _match(result: MatchResult) -> MatchResponse:
    return {
        'id': result.id,
        'isMatch': result.is_match,
        # JSON has no infinity; the "no match" sentinel distance is sent as null
        'distance': result.distance if math.isfinite(result.distance) else None,
        'similarity': result.similarity,
        'confidence': result.confidence,
        'tolerance': result.tolerance,
        'matches': [
            {'id': m.id, 'distance': m.distance, 'similarity': m.similarity, 'confidence': m.confidence}
            for m in result.matches
        ],
        'ambiguityScore': result.ambiguity_score,
    }


def _http_exception(e: Exception) -> HTTPException:
    """Translate pipeline and decoding errors into HTTP errors."""
    if isinstance(e, ImageProcessingError):
        logger.warning(f"Image decoding error: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'error': str(e), 'code': 'invalid_image'}
        )
    if isinstance(e, ModelLoadError):
        logger.error(f"Model load error: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={'error': str(e), 'code': e.code}
        )
    if isinstance(e, DetectionTimeoutError):
        logger.error(f"Detection timeout: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={'error': str(e), 'code': e.code}
        )
    if isinstance(e, ExtractionError):
        logger.error(f"Feature extraction error: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={'error': str(e), 'code': e.code}
        )
    if isinstance(e, FaceRecognitionError):
        logger.warning(f"Face recognition error: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'error': str(e), 'code': e.code}
        )
    if isinstance(e, ValueError):
        logger.warning(f"Validation error: {str(e)}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'error': str(e), 'code': 'invalid_input'}
        )
    error_details: ErrorResponse = {
        'error': str(e),
        'code': 'internal_error',
        'traceback': traceback.format_exc()
    }
    logger.error("Error details:", extra={'error_details': error_details})
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error_details
    )


def _decode(payload: str):
    return bgr_to_rgb(decode_base64_image(payload))


@router.post("/detect-faces", response_model=DetectFacesResponse)
async def detect_faces(
    request_data: DetectFacesRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Detect every face in a photo.

    Args:
        request_data: Dictionary containing the base64-encoded image.
            - image: Base64 string of the photo
            - annotate: Return a preview with boxes and landmarks drawn

    Returns:
        Dictionary with detected faces (box, confidence, landmarks) and,
        when requested, the annotated preview as a JPEG data URL.
    """
    try:
        bgr = decode_base64_image(request_data['image'])
        detections = await service.detect_faces(bgr_to_rgb(bgr))
        logger.info(f"Detected {len(detections)} faces")

        response: DetectFacesResponse = {'faces': [_detected_face(d) for d in detections]}
        if request_data.get('annotate'):
            overlay = draw_face_detections(
                bgr, detections, DrawOptions(show_landmarks=True, landmark_mode='eyes')
            )
            response['annotatedImage'] = encode_base64_image(overlay)
        return response
    except HTTPException:
        raise
    except Exception as e:
        raise _http_exception(e)


@router.post("/validate-image", response_model=QualityVerdictResponse)
async def validate_image(
    request_data: ValidateImageRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Check whether a captured photo is usable for enrollment or lookup.

    Rejections are returned with status 200 and `valid: false`; the
    `reason` field is machine-readable and `message` is the guidance text
    shown to the visitor.
    """
    try:
        image = _decode(request_data['image'])
        options = service.quality_options(
            min_confidence=request_data.get('minConfidence'),
            min_face_ratio=request_data.get('minFaceRatio'),
            max_center_distance=request_data.get('maxCenterDistance'),
            max_face_angle=request_data.get('maxFaceAngle'),
        )
        verdict = await service.validate_image_quality(image, options)
        return _verdict(verdict)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_exception(e)


@router.post("/extract-encoding", response_model=EncodingResponse)
async def extract_encoding(
    request_data: ExtractEncodingRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Extract the 128-d descriptor of the single face in a photo.

    The descriptor cache is keyed by `imageKey`, or by a digest of the
    payload when no key is given.
    """
    try:
        payload = request_data['image']
        image = _decode(payload)
        encoding = await service.extract_face_encoding(
            image,
            cache_key=request_data.get('imageKey') or payload_digest(payload),
            use_cache=request_data.get('useCache', True),
        )
        return _encoding(encoding)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_exception(e)


@router.post("/compare-faces", response_model=ComparisonResponse)
async def compare_faces(
    request_data: CompareFacesRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Compare two descriptors by Euclidean distance."""
    try:
        comparison = service.compare_faces(
            request_data['descriptorA'],
            request_data['descriptorB'],
            request_data.get('tolerance'),
        )
        return _comparison(comparison)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_exception(e)


@router.post("/match-face", response_model=MatchResponse)
async def match_face(
    request_data: MatchFaceRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Find the gallery entry closest to a descriptor or a photo.

    Args:
        request_data: Dictionary containing:
            - gallery: List of {id, descriptor} from the visitor records
            - descriptor: Query descriptor, or
            - image: Base64 photo to extract the query descriptor from
            - tolerance: Optional per-request match tolerance

    Returns:
        The best match, every match within tolerance and an ambiguity score
        when the two best matches are too close to call. An id of "Unknown"
        means no visitor matched.
    """
    try:
        tolerance: Optional[float] = request_data.get('tolerance')
        gallery: List = list(request_data['gallery'])
        descriptor = request_data.get('descriptor')

        if descriptor is not None:
            result = service.find_best_match(descriptor, gallery, tolerance)
        elif request_data.get('image'):
            payload = request_data['image']
            result = await service.search_by_face(
                _decode(payload),
                gallery,
                tolerance,
                cache_key=request_data.get('imageKey') or payload_digest(payload),
            )
        else:
            raise ValueError("Either 'descriptor' or 'image' is required")

        logger.info(f"Match result: {result.id} (distance: {result.distance:.3f})")
        return _match(result)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_exception(e)


@router.get("/tolerance", response_model=ToleranceResponse)
async def get_tolerance(service: FaceRecognitionService = Depends(get_face_service)) -> Dict:
    return {'tolerance': service.tolerance}


@router.put("/tolerance", response_model=ToleranceResponse)
async def set_tolerance(
    request_data: ToleranceRequest,
    service: FaceRecognitionService = Depends(get_face_service),
) -> Dict:
    """Set the default match tolerance, a value in (0, 1]."""
    try:
        service.set_tolerance(request_data['tolerance'])
        return {'tolerance': service.tolerance}
    except Exception as e:
        raise _http_exception(e)
