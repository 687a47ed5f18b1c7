"""Face pipeline error taxonomy.

Quality rejections are not errors: they are returned as verdicts by the
quality validator. The classes below cover failures that interrupt a call.
"""


class FaceRecognitionError(Exception):
    """Base exception for face pipeline errors."""
    code = "face_recognition_error"


class ModelLoadError(FaceRecognitionError):
    """Raised when the detection or recognition models cannot be loaded."""
    code = "model_load_failed"


class ExtractionError(FaceRecognitionError):
    """Raised when the model pipeline cannot process an image."""
    code = "extraction_failed"


class DetectionTimeoutError(ExtractionError):
    """Raised when an inference call exceeds the configured timeout."""
    code = "detection_timeout"


class NoFaceDetectedError(FaceRecognitionError):
    """Raised when no face is detected in an image."""
    code = "no_face_detected"


class MultipleFacesDetectedError(FaceRecognitionError):
    """Raised when more than one face is detected where one is required."""
    code = "multiple_faces_detected"

    def __init__(self, message: str, count: int = 0):
        super().__init__(message)
        self.count = count


class LowConfidenceError(FaceRecognitionError):
    """Raised when the only detected face scores below the confidence threshold."""
    code = "low_confidence"

    def __init__(self, message: str, confidence: float = 0.0, threshold: float = 0.0):
        super().__init__(message)
        self.confidence = confidence
        self.threshold = threshold


class InvalidDescriptorError(FaceRecognitionError, ValueError):
    """Raised when a descriptor is not a sequence of 128 numbers."""
    code = "invalid_descriptor"


class InvalidInputError(FaceRecognitionError, ValueError):
    """Raised when matcher arguments are structurally invalid."""
    code = "invalid_input"
