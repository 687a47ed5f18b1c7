"""
Unit tests for the dlib backend score mapping
"""
import math

import pytest

# face_recognition exits the interpreter when its weights package is missing
pytest.importorskip("face_recognition_models")
pytest.importorskip("dlib")
backend = pytest.importorskip("facedesk.core.backend")


class TestScoreMapping:
    """Test SVM margin to confidence mapping"""

    def test_zero_margin_is_half(self):
        assert backend.score_to_confidence(0.0) == pytest.approx(0.5)
        assert backend.confidence_to_score(0.5) == pytest.approx(0.0)

    def test_monotonic(self):
        margins = [-3.0, -0.5, 0.0, 0.5, 3.0]
        confidences = [backend.score_to_confidence(m) for m in margins]
        assert confidences == sorted(confidences)
        assert all(0.0 < c < 1.0 for c in confidences)

    @pytest.mark.parametrize("confidence", [0.1, 0.3, 0.5, 0.8, 0.95])
    def test_round_trip(self, confidence):
        margin = backend.confidence_to_score(confidence)
        assert backend.score_to_confidence(margin) == pytest.approx(confidence)

    @pytest.mark.parametrize("confidence", [0.0, 1.0])
    def test_extreme_thresholds_stay_finite(self, confidence):
        assert math.isfinite(backend.confidence_to_score(confidence))
