"""Async facade over the face pipeline.

One service instance owns the models, the descriptor cache and the matcher.
Model loading and inference run in worker threads; cache access stays on the
event loop thread.
"""
import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Sequence, TypeVar

import numpy as np

from ..config import Settings, settings as default_settings
from ..models.face import DetectionResult, FaceComparison, FaceEncoding, MatchResult
from .cache import DescriptorCache
from .detector import DetectionOptions, ExtractionOptions, FaceBackend, FaceDetector
from .errors import DetectionTimeoutError, FaceRecognitionError, ModelLoadError
from .matcher import FaceMatcher, GalleryItem
from .quality import QualityOptions, QualityValidator, QualityVerdict

logger = logging.getLogger(__name__)

T = TypeVar("T")

WARMUP_SIZE = 100
WARMUP_OPTIONS = DetectionOptions(input_size=160, score_threshold=0.1)


def _default_backend() -> FaceBackend:
    from .backend import DlibFaceBackend
    return DlibFaceBackend()


class FaceRecognitionService:
    """Face detection, quality gating and matching for the visitor front desk."""

    def __init__(self, settings: Optional[Settings] = None,
                 backend: Optional[FaceBackend] = None):
        self.settings = settings or default_settings
        self.backend = backend or _default_backend()
        self.detector = FaceDetector(self.backend)
        self.validator = QualityValidator(self.detector)
        self.matcher = FaceMatcher(self.settings.tolerance)
        self.cache = DescriptorCache(self.settings.cache_capacity)

        self._initialized = False
        self._load_task: Optional[asyncio.Task] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # Option builders

    def detection_options(self, **overrides: Any) -> DetectionOptions:
        values = dict(
            input_size=self.settings.input_size,
            score_threshold=self.settings.score_threshold,
            max_dimension=self.settings.max_dimension,
        )
        values.update(overrides)
        return DetectionOptions(**values)

    def extraction_options(self, **overrides: Any) -> ExtractionOptions:
        detection = overrides.pop('detection', None) or self.detection_options()
        return ExtractionOptions(
            detection=detection,
            min_confidence=overrides.pop('min_confidence', self.settings.min_confidence),
        )

    def quality_options(self, **overrides: Any) -> QualityOptions:
        values = dict(
            min_confidence=self.settings.min_confidence,
            min_face_ratio=self.settings.min_face_ratio,
            max_center_distance=self.settings.max_center_distance,
            max_face_angle=self.settings.max_face_angle,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return QualityOptions(**values)

    # Initialization

    async def initialize(self) -> bool:
        """Load the models once; concurrent callers share the same load.

        Raises:
            ModelLoadError: If loading fails. The next call retries.
        """
        if self._initialized:
            return True
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load_models())
        task = self._load_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._load_task is task:
                self._load_task = None
            raise
        return True

    async def _load_models(self) -> None:
        logger.info("Loading face recognition models...")
        start_time = time.time()
        try:
            await asyncio.to_thread(self.backend.load)
        except FaceRecognitionError:
            logger.error("Error loading face recognition models", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Error loading face recognition models: {e}")
            raise ModelLoadError(f"Failed to load face recognition models: {e}") from e

        self.cache.clear()
        self._initialized = True
        logger.info(f"Face recognition models loaded successfully in {time.time() - start_time:.2f}s")

        if self.settings.warmup:
            await self._warmup()

    async def _warmup(self) -> None:
        start_time = time.time()
        blank = np.zeros((WARMUP_SIZE, WARMUP_SIZE, 3), dtype=np.uint8)
        try:
            await self._run(self.detector.detect_faces, blank, WARMUP_OPTIONS)
        except FaceRecognitionError as e:
            logger.warning(f"Model warmup failed: {e}")
            return
        logger.info(f"Models warmed up in {time.time() - start_time:.2f}s")

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        call = asyncio.to_thread(func, *args)
        timeout = self.settings.detection_timeout
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise DetectionTimeoutError(f"Face detection timed out after {timeout}s") from e

    # Pipeline operations

    async def detect_faces(self, image: np.ndarray,
                           options: Optional[DetectionOptions] = None) -> List[DetectionResult]:
        await self.initialize()
        return await self._run(self.detector.detect_faces, image, options or self.detection_options())

    async def extract_face_encoding(self, image: np.ndarray,
                                    options: Optional[ExtractionOptions] = None,
                                    cache_key: Optional[str] = None,
                                    use_cache: bool = True) -> FaceEncoding:
        """Extract the single-face descriptor of `image`, consulting the cache when keyed."""
        caching = use_cache and cache_key is not None
        if caching:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Using cached face descriptor for {cache_key!r}")
                return cached

        await self.initialize()
        encoding = await self._run(
            self.detector.extract_face_encoding, image, options or self.extraction_options()
        )
        if caching:
            self.cache.put(cache_key, encoding)
        return encoding

    async def validate_image_quality(self, image: np.ndarray,
                                     options: Optional[QualityOptions] = None,
                                     detection: Optional[DetectionOptions] = None) -> QualityVerdict:
        """Run the quality gates on `image`.

        Without explicit `detection` options the detector floor is the lower of
        `score_threshold` and `options.min_confidence`, so a lowered confidence
        gate also admits the weaker detections it is meant to judge.
        """
        options = options or self.quality_options()
        if detection is None:
            detection = self.detection_options(
                score_threshold=min(options.min_confidence, self.settings.score_threshold)
            )
        await self.initialize()
        return await self._run(self.validator.validate_image_quality, image, options, detection)

    async def search_by_face(self, image: np.ndarray, gallery: Sequence[GalleryItem],
                             tolerance: Optional[float] = None,
                             cache_key: Optional[str] = None) -> MatchResult:
        """Look up a returning visitor: extract the query face and match it."""
        encoding = await self.extract_face_encoding(image, cache_key=cache_key)
        return self.find_best_match(encoding.encoding, gallery, tolerance)

    # Matching

    def compare_faces(self, descriptor_a: Any, descriptor_b: Any,
                      tolerance: Optional[float] = None) -> FaceComparison:
        return self.matcher.compare_faces(descriptor_a, descriptor_b, tolerance)

    def find_best_match(self, query: Any, gallery: Sequence[GalleryItem],
                        tolerance: Optional[float] = None,
                        early_exit: bool = False) -> MatchResult:
        return self.matcher.find_best_match(query, gallery, tolerance, early_exit=early_exit)

    @property
    def tolerance(self) -> float:
        return self.matcher.tolerance

    def set_tolerance(self, tolerance: float) -> None:
        self.matcher.set_tolerance(tolerance)
        logger.info(f"Match tolerance set to {tolerance}")
