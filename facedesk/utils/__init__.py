"""Utility functions for image processing"""
from .image import (
    decode_base64_image,
    encode_base64_image,
    bgr_to_rgb,
    payload_digest
)
from .draw import DrawOptions, draw_face_detections

__all__ = [
    'decode_base64_image',
    'encode_base64_image',
    'bgr_to_rgb',
    'payload_digest',
    'DrawOptions',
    'draw_face_detections'
]
