"""Face descriptor matching.

Descriptors are compared by Euclidean distance. Two scores are derived from
the distance: `similarity` (1 - distance) does not depend on the tolerance,
`confidence` (1 - distance / tolerance) is relative to the decision threshold.
"""
import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..models.face import (
    DESCRIPTOR_LENGTH,
    FaceComparison,
    GalleryEntry,
    MatchCandidate,
    MatchResult,
)
from .errors import InvalidDescriptorError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.6
AMBIGUITY_BAND = 0.1
EARLY_EXIT_RATIO = 0.5

GalleryItem = Union[GalleryEntry, Mapping[str, Any]]


def as_descriptor(values: Any) -> np.ndarray:
    """Convert a 128-number sequence to a float64 vector.

    Raises:
        InvalidDescriptorError: If `values` is missing, non-numeric, non-finite
            or not 128 long.
    """
    if values is None or isinstance(values, (str, bytes)):
        raise InvalidDescriptorError("Descriptor must be a sequence of numbers")
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidDescriptorError(f"Descriptor must be numeric: {e}") from e
    if vector.ndim != 1 or vector.shape[0] != DESCRIPTOR_LENGTH:
        raise InvalidDescriptorError(
            f"Descriptor must have exactly {DESCRIPTOR_LENGTH} elements, got shape {vector.shape}"
        )
    if not np.all(np.isfinite(vector)):
        raise InvalidDescriptorError("Descriptor must not contain NaN or infinite values")
    return vector


def _check_tolerance(tolerance: float) -> float:
    tolerance = float(tolerance)
    if not tolerance > 0:
        raise InvalidInputError(f"Tolerance must be positive, got {tolerance}")
    return tolerance


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def compare_faces(
    descriptor_a: Any,
    descriptor_b: Any,
    tolerance: float = DEFAULT_TOLERANCE,
) -> FaceComparison:
    """Compare two face descriptors.

    Args:
        descriptor_a: First descriptor (128 numbers).
        descriptor_b: Second descriptor (128 numbers).
        tolerance: Maximum distance still considered the same person.

    Returns:
        FaceComparison with distance, match decision and derived scores.

    Raises:
        InvalidDescriptorError: If either descriptor is malformed.
        InvalidInputError: If tolerance is not positive.
    """
    a = as_descriptor(descriptor_a)
    b = as_descriptor(descriptor_b)
    tolerance = _check_tolerance(tolerance)

    distance = float(np.sqrt(np.sum((a - b) ** 2)))
    return FaceComparison(
        is_match=distance <= tolerance,
        distance=distance,
        similarity=_clamp(1.0 - distance),
        confidence=_clamp(1.0 - distance / tolerance),
        tolerance=tolerance,
    )


def _entry_fields(entry: GalleryItem):
    if isinstance(entry, GalleryEntry):
        return entry.id, entry.descriptor
    if isinstance(entry, Mapping):
        return entry.get('id'), entry.get('descriptor')
    return None, None


def find_best_match(
    query: Any,
    gallery: Sequence[GalleryItem],
    tolerance: float = DEFAULT_TOLERANCE,
    early_exit: bool = False,
) -> MatchResult:
    """Find the gallery entry closest to `query`.

    Entries with a missing or malformed descriptor are skipped. When no entry
    is within tolerance the "Unknown" sentinel is returned. When the two best
    matches are closer than AMBIGUITY_BAND to each other the result carries an
    ambiguity score in (0, 1].

    Args:
        query: Query descriptor (128 numbers).
        gallery: GalleryEntry objects or mappings with `id` and `descriptor`.
        tolerance: Maximum distance still considered the same person.
        early_exit: Stop scanning once a candidate is closer than half the tolerance.

    Raises:
        InvalidDescriptorError: If the query descriptor is malformed.
        InvalidInputError: If the gallery is empty or not a list.
    """
    query_vector = as_descriptor(query)
    if gallery is None or isinstance(gallery, (str, bytes, Mapping)) or len(gallery) == 0:
        raise InvalidInputError("Gallery must be a non-empty list of {id, descriptor} entries")
    tolerance = _check_tolerance(tolerance)

    best: Optional[MatchCandidate] = None
    matches: List[MatchCandidate] = []
    early_exit_distance = tolerance * EARLY_EXIT_RATIO

    for position, entry in enumerate(gallery):
        entry_id, descriptor = _entry_fields(entry)
        if descriptor is None:
            logger.warning(f"Gallery entry {entry_id!r} (#{position}) has no descriptor, skipping")
            continue
        try:
            comparison = compare_faces(query_vector, descriptor, tolerance)
        except InvalidDescriptorError as e:
            logger.warning(f"Gallery entry {entry_id!r} (#{position}) has an invalid descriptor, skipping: {e}")
            continue

        candidate = MatchCandidate(
            id=str(entry_id) if entry_id is not None else f"#{position}",
            distance=comparison.distance,
            similarity=comparison.similarity,
            confidence=comparison.confidence,
        )
        if comparison.is_match:
            matches.append(candidate)
        if best is None or candidate.distance < best.distance:
            best = candidate
            if early_exit and best.distance < early_exit_distance:
                logger.debug(f"Found very close match {best.id!r}, stopping early")
                break

    if best is None or not matches:
        return MatchResult.no_match(tolerance)

    matches.sort(key=lambda m: m.distance)
    top = matches[0]
    result = MatchResult(
        id=top.id,
        is_match=True,
        distance=top.distance,
        similarity=top.similarity,
        confidence=top.confidence,
        tolerance=tolerance,
        matches=matches,
    )

    if len(matches) >= 2:
        gap = matches[1].distance - matches[0].distance
        if gap < AMBIGUITY_BAND:
            result.ambiguity_score = 1.0 - gap / AMBIGUITY_BAND
            logger.info(
                f"Possible ambiguity between {matches[0].id!r} and {matches[1].id!r} "
                f"(gap: {gap:.4f}, ambiguity: {result.ambiguity_score:.2f})"
            )

    return result


class FaceMatcher:
    """Holds the process-wide default tolerance for comparisons."""

    def __init__(self, tolerance: float = DEFAULT_TOLERANCE):
        self._tolerance = DEFAULT_TOLERANCE
        self.set_tolerance(tolerance)

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def set_tolerance(self, tolerance: float) -> None:
        """Set the default tolerance.

        Zero is rejected: with a tolerance of 0 only bit-identical descriptors
        would match and the confidence score would divide by zero.

        Raises:
            ValueError: If `tolerance` is not in (0, 1].
        """
        if not 0 < tolerance <= 1:
            raise ValueError(f"Tolerance must be in (0, 1], got {tolerance}")
        self._tolerance = float(tolerance)

    def compare_faces(self, descriptor_a: Any, descriptor_b: Any,
                      tolerance: Optional[float] = None) -> FaceComparison:
        return compare_faces(
            descriptor_a, descriptor_b,
            self._tolerance if tolerance is None else tolerance,
        )

    def find_best_match(self, query: Any, gallery: Sequence[GalleryItem],
                        tolerance: Optional[float] = None,
                        early_exit: bool = False) -> MatchResult:
        return find_best_match(
            query, gallery,
            self._tolerance if tolerance is None else tolerance,
            early_exit=early_exit,
        )
