"""Dependency providers for API routes"""
from fastapi import HTTPException, Request, status

from ..core.service import FaceRecognitionService


def get_face_service(request: Request) -> FaceRecognitionService:
    """Return the service created by the application lifespan."""
    service = getattr(request.app.state, 'face_service', None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={'error': 'Face recognition service not started', 'code': 'service_unavailable'}
        )
    return service
