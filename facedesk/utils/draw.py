"""Face detection overlay drawing."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..models.face import DetectionResult, Point

Color = Tuple[int, int, int]  # BGR

GREEN: Color = (0, 255, 0)
RED: Color = (0, 0, 255)

LANDMARK_MODES = ('full', 'minimal', 'eyes')
MINIMAL_FEATURES = ('left_eye', 'right_eye', 'top_lip', 'bottom_lip')
EYE_FEATURES = ('left_eye', 'right_eye')


@dataclass
class DrawOptions:
    show_box: bool = True
    show_landmarks: bool = False
    show_confidence: bool = True
    show_labels: bool = False
    show_text_background: bool = True
    box_color: Color = GREEN
    text_color: Color = (0, 0, 0)
    landmark_color: Optional[Color] = None
    match_color: Color = GREEN
    no_match_color: Color = RED
    use_match_colors: bool = False
    match_threshold: float = 0.6
    line_width: int = 2
    font_scale: float = 0.5
    label_padding: int = 5
    landmark_size: int = 2
    landmark_mode: str = 'full'


def _landmark_points(detection: DetectionResult, mode: str) -> Iterable[Point]:
    if mode == 'minimal':
        names: Sequence[str] = MINIMAL_FEATURES
    elif mode == 'eyes':
        names = EYE_FEATURES
    else:
        names = list(detection.landmarks)
    for name in names:
        yield from detection.landmarks.get(name, [])


def _caption(detection: DetectionResult, label: Optional[str], options: DrawOptions) -> str:
    parts: List[str] = []
    if options.show_confidence:
        parts.append(f"{round(detection.score * 100)}%")
    if options.show_labels and label:
        parts.append(label)
    return " - ".join(parts)


def draw_face_detections(image: np.ndarray, detections: Sequence[DetectionResult],
                         options: Optional[DrawOptions] = None,
                         labels: Optional[Sequence[Optional[str]]] = None) -> np.ndarray:
    """Draw boxes, captions and landmarks on a copy of a BGR image.

    Args:
        image: BGR image the detections were computed on (same coordinate space).
        detections: Faces to draw.
        options: Drawing options.
        labels: Optional per-detection labels, shown when `show_labels` is set.

    Returns:
        The annotated copy.
    """
    options = options or DrawOptions()
    if options.landmark_mode not in LANDMARK_MODES:
        raise ValueError(f"landmark_mode must be one of {LANDMARK_MODES}, got {options.landmark_mode!r}")

    canvas = image.copy()
    font = cv2.FONT_HERSHEY_SIMPLEX

    for index, detection in enumerate(detections):
        box = detection.box
        color = options.box_color
        if options.use_match_colors:
            color = options.match_color if detection.score >= options.match_threshold else options.no_match_color

        x1, y1 = int(round(box.x)), int(round(box.y))
        x2, y2 = int(round(box.x + box.width)), int(round(box.y + box.height))
        if options.show_box:
            cv2.rectangle(canvas, (x1, y1), (x2, y2), color, options.line_width)

        label = labels[index] if labels is not None and index < len(labels) else None
        text = _caption(detection, label, options)
        if text:
            (text_w, text_h), baseline = cv2.getTextSize(text, font, options.font_scale, 1)
            pad = options.label_padding
            top = max(0, y1 - text_h - baseline - 2 * pad)
            if options.show_text_background:
                cv2.rectangle(canvas, (x1, top), (x1 + text_w + 2 * pad, y1), color, -1)
                text_color = options.text_color
            else:
                text_color = color
            cv2.putText(canvas, text, (x1 + pad, y1 - pad - baseline), font,
                        options.font_scale, text_color, 1, cv2.LINE_AA)

        if options.show_landmarks:
            landmark_color = options.landmark_color or color
            for x, y in _landmark_points(detection, options.landmark_mode):
                cv2.circle(canvas, (int(round(x)), int(round(y))), options.landmark_size, landmark_color, -1)

    return canvas
