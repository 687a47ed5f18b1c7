"""
Unit tests for image and drawing utilities
"""
import base64

import numpy as np
import pytest

from conftest import FakeBackend, FakeFace
from facedesk.core.detector import FaceDetector
from facedesk.utils.draw import DrawOptions, draw_face_detections
from facedesk.utils.image import (
    ImageDecodingError,
    ImageFormatError,
    ImageProcessingError,
    decode_base64_image,
    encode_base64_image,
    payload_digest,
    strip_data_url,
)


@pytest.fixture
def gray_photo() -> np.ndarray:
    return np.full((60, 80, 3), 127, dtype=np.uint8)


class TestImageUtils:
    """Test base64 image helpers"""

    def test_strip_data_url(self):
        assert strip_data_url("data:image/png;base64,AAAA") == "AAAA"
        assert strip_data_url("AAAA") == "AAAA"

    def test_decode_data_url_and_raw(self, gray_photo):
        data_url = encode_base64_image(gray_photo)
        raw = strip_data_url(data_url)

        for payload in (data_url, raw):
            decoded = decode_base64_image(payload)
            assert decoded.shape == (60, 80, 3)
            assert decoded.dtype == np.uint8

    def test_empty_payload(self):
        with pytest.raises(ImageDecodingError):
            decode_base64_image("")

    def test_not_an_image(self):
        payload = base64.b64encode(b"plain text, not a picture").decode('ascii')
        with pytest.raises(ImageFormatError):
            decode_base64_image(payload)

    def test_errors_share_base(self):
        assert issubclass(ImageDecodingError, ImageProcessingError)
        assert issubclass(ImageFormatError, ImageProcessingError)

    def test_payload_digest_ignores_prefix(self):
        assert payload_digest("data:image/jpeg;base64,AAAA") == payload_digest("AAAA")
        assert payload_digest("AAAA") != payload_digest("BBBB")


class TestDrawFaceDetections:
    """Test detection overlay"""

    @pytest.fixture
    def detections(self):
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        return FaceDetector(FakeBackend(faces=[FakeFace()])).detect_faces(image)

    def test_returns_annotated_copy(self, detections):
        image = np.zeros((200, 200, 3), dtype=np.uint8)

        overlay = draw_face_detections(image, detections, DrawOptions(show_landmarks=True))

        assert overlay.shape == image.shape
        assert overlay.any()
        assert not image.any()

    def test_box_uses_configured_color(self, detections):
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        options = DrawOptions(show_confidence=False, box_color=(255, 0, 0), line_width=1)

        overlay = draw_face_detections(image, detections, options)

        # top-left corner of the (70, 60, 60, 80) box
        assert tuple(overlay[60, 70]) == (255, 0, 0)

    def test_match_colors(self, detections):
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        options = DrawOptions(show_confidence=False, use_match_colors=True, match_threshold=0.99, line_width=1)

        overlay = draw_face_detections(image, detections, options)

        assert tuple(overlay[60, 70]) == options.no_match_color

    def test_no_detections(self):
        image = np.zeros((50, 50, 3), dtype=np.uint8)
        assert not draw_face_detections(image, []).any()

    def test_invalid_landmark_mode(self, detections):
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        with pytest.raises(ValueError):
            draw_face_detections(image, detections, DrawOptions(landmark_mode='sparse'))
