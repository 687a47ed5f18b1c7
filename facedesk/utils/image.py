"""Image processing utilities.

This module provides utility functions for turning uploaded or captured photos
into rasters the face pipeline accepts, and back into base64 for previews.
"""

import base64
import binascii
import hashlib

import cv2
import numpy as np


class ImageProcessingError(Exception):
    """Base exception for image processing errors."""
    pass


class ImageDecodingError(ImageProcessingError):
    """Exception raised when image decoding fails."""
    pass


class ImageFormatError(ImageProcessingError):
    """Exception raised when image format is invalid."""
    pass


def strip_data_url(base64_string: str) -> str:
    """Remove a `data:image/...;base64,` prefix if present."""
    if ';base64,' in base64_string:
        return base64_string.split(';base64,', 1)[1]
    if base64_string.startswith('data:') and ',' in base64_string:
        return base64_string.split(',', 1)[1]
    return base64_string


def decode_base64_image(base64_string: str) -> np.ndarray:
    """Decode base64 string to OpenCV image.

    Args:
        base64_string: Base64 encoded image string, optionally with data URL prefix.
            Example formats:
            - "data:image/jpeg;base64,/9j/4AAQSkZ..."
            - "/9j/4AAQSkZ..." (without prefix)

    Returns:
        Decoded image as numpy array in BGR format.

    Raises:
        ImageDecodingError: If base64 decoding fails.
        ImageFormatError: If decoded data cannot be read as an image.
    """
    if not isinstance(base64_string, str) or not base64_string:
        raise ImageDecodingError("Image payload must be a non-empty base64 string")

    try:
        image_bytes = base64.b64decode(strip_data_url(base64_string), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodingError(f"Failed to decode base64 string: {str(e)}")

    # Convert bytes to numpy array
    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise ImageFormatError("Image payload is empty")

    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageFormatError("Failed to decode image data")

    return image


def bgr_to_rgb(image: np.ndarray) -> np.ndarray:
    """Convert an OpenCV BGR image to the RGB order the face models expect."""
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def encode_base64_image(image: np.ndarray, quality: int = 90) -> str:
    """Encode a BGR image as a JPEG data URL.

    Raises:
        ImageFormatError: If OpenCV cannot encode the image.
    """
    ok, buffer = cv2.imencode('.jpg', image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ImageFormatError("Failed to encode image as JPEG")
    return 'data:image/jpeg;base64,' + base64.b64encode(buffer.tobytes()).decode('ascii')


def payload_digest(base64_string: str) -> str:
    """Stable cache key for an uploaded image payload."""
    return hashlib.sha1(strip_data_url(base64_string).encode('ascii', 'ignore')).hexdigest()
