"""
Unit tests for descriptor comparison and gallery matching
"""
import math

import numpy as np
import pytest

from conftest import make_descriptor
from facedesk.core.errors import InvalidDescriptorError, InvalidInputError
from facedesk.core.matcher import FaceMatcher, compare_faces, find_best_match
from facedesk.models.face import UNKNOWN_ID, GalleryEntry


class TestCompareFaces:
    """Test compare_faces"""

    def test_self_distance_is_zero(self):
        a = make_descriptor(0.3, d5=0.2)
        result = compare_faces(a, a, 0.6)

        assert result.distance == 0
        assert result.is_match is True
        assert result.similarity == 1
        assert result.confidence == 1

    def test_distance_is_symmetric(self):
        rng = np.random.default_rng(7)
        for _ in range(10):
            a = rng.normal(size=128)
            b = rng.normal(size=128)
            assert compare_faces(a, b).distance == compare_faces(b, a).distance

    def test_euclidean_distance(self):
        result = compare_faces(make_descriptor(0.0), make_descriptor(0.0, d0=0.3, d1=0.4), 0.6)

        assert result.distance == pytest.approx(0.5)
        assert result.is_match is True
        assert result.similarity == pytest.approx(0.5)
        assert result.confidence == pytest.approx(1 - 0.5 / 0.6)
        assert result.tolerance == 0.6

    def test_scores_are_clamped(self):
        result = compare_faces(make_descriptor(0.1), make_descriptor(0.9), 0.6)

        assert result.is_match is False
        assert result.similarity == 0.0
        assert result.confidence == 0.0

    def test_tolerance_monotonicity(self):
        a = make_descriptor(0.0)
        b = make_descriptor(0.0, d0=0.45)
        decisions = [compare_faces(a, b, t).is_match for t in (0.3, 0.44, 0.46, 0.6, 0.9)]

        assert decisions == [False, False, True, True, True]

    @pytest.mark.parametrize("bad", [
        [0.1] * 127,
        [0.1] * 129,
        None,
        "not a descriptor",
        [[0.1] * 128],
    ])
    def test_invalid_descriptor(self, bad):
        with pytest.raises(InvalidDescriptorError):
            compare_faces(make_descriptor(), bad)
        with pytest.raises(InvalidDescriptorError):
            compare_faces(bad, make_descriptor())

    def test_non_positive_tolerance(self):
        with pytest.raises(InvalidInputError):
            compare_faces(make_descriptor(), make_descriptor(), 0)

    def test_accepts_plain_lists(self):
        result = compare_faces([0.2] * 128, [0.2] * 128)
        assert result.is_match is True


class TestFindBestMatch:
    """Test find_best_match"""

    def test_scenario_a_exact_match(self):
        query = [0.1] * 128
        gallery = [
            {'id': 'v1', 'descriptor': [0.1] * 128},
            {'id': 'v2', 'descriptor': [0.9] * 128},
        ]
        result = find_best_match(query, gallery)

        assert result.id == 'v1'
        assert result.distance == pytest.approx(0.0)
        assert result.is_match is True
        assert [m.id for m in result.matches] == ['v1']
        assert result.ambiguity_score is None

    def test_scenario_b_no_match(self):
        gallery = [
            GalleryEntry('v1', make_descriptor(0.9)),
            GalleryEntry('v2', make_descriptor(0.1, d0=0.7)),
        ]
        result = find_best_match(make_descriptor(0.1), gallery, 0.6)

        assert result.id == UNKNOWN_ID
        assert result.is_match is False
        assert math.isinf(result.distance)
        assert result.similarity == 0
        assert result.confidence == 0
        assert result.matches == []

    def test_picks_minimum_distance(self):
        query = make_descriptor(0.0)
        gallery = [
            GalleryEntry('far', make_descriptor(0.0, d0=0.5)),
            GalleryEntry('near', make_descriptor(0.0, d0=0.1)),
            GalleryEntry('mid', make_descriptor(0.0, d0=0.3)),
        ]
        result = find_best_match(query, gallery, 0.6)

        assert result.id == 'near'
        assert result.distance == pytest.approx(0.1)
        assert [m.id for m in result.matches] == ['near', 'mid', 'far']

    def test_ambiguity_when_gap_is_small(self):
        query = make_descriptor(0.0)
        gallery = [
            GalleryEntry('a', make_descriptor(0.0, d0=0.30)),
            GalleryEntry('b', make_descriptor(0.0, d0=0.35)),
        ]
        result = find_best_match(query, gallery, 0.6)

        assert result.id == 'a'
        assert result.ambiguity_score is not None
        assert result.ambiguity_score > 0
        assert result.ambiguity_score == pytest.approx(0.5)
        assert result.is_ambiguous

    def test_no_ambiguity_when_gap_is_wide(self):
        query = make_descriptor(0.0)
        gallery = [
            GalleryEntry('a', make_descriptor(0.0, d0=0.2)),
            GalleryEntry('b', make_descriptor(0.0, d0=0.4)),
        ]
        result = find_best_match(query, gallery, 0.6)

        assert result.ambiguity_score is None

    def test_skips_malformed_entries(self, caplog):
        gallery = [
            {'id': 'missing'},
            {'id': 'short', 'descriptor': [0.1] * 10},
            {'id': 'none', 'descriptor': None},
            {'id': 'ok', 'descriptor': [0.1] * 128},
        ]
        result = find_best_match([0.1] * 128, gallery)

        assert result.id == 'ok'
        assert 'skipping' in caplog.text

    def test_all_entries_malformed_returns_sentinel(self):
        result = find_best_match([0.1] * 128, [{'id': 'x', 'descriptor': [1, 2]}])
        assert result.id == UNKNOWN_ID

    @pytest.mark.parametrize("bad_value", [math.nan, math.inf, -math.inf])
    def test_skips_non_finite_entries(self, bad_value, caplog):
        broken = make_descriptor(0.1)
        broken[0] = bad_value
        gallery = [
            {'id': 'broken', 'descriptor': broken},
            {'id': 'v1', 'descriptor': make_descriptor(0.1)},
        ]

        result = find_best_match(make_descriptor(0.1), gallery)

        assert result.id == 'v1'
        assert result.distance == 0
        assert [m.id for m in result.matches] == ['v1']
        assert 'skipping' in caplog.text

    def test_non_finite_query(self):
        query = make_descriptor(0.1)
        query[5] = math.nan
        with pytest.raises(InvalidDescriptorError):
            find_best_match(query, [{'id': 'v1', 'descriptor': make_descriptor(0.1)}])

    def test_invalid_query(self):
        with pytest.raises(InvalidDescriptorError):
            find_best_match([0.1] * 64, [{'id': 'v1', 'descriptor': [0.1] * 128}])

    @pytest.mark.parametrize("gallery", [[], None])
    def test_empty_gallery(self, gallery):
        with pytest.raises(InvalidInputError):
            find_best_match([0.1] * 128, gallery)

    def test_early_exit_stops_scanning(self):
        query = make_descriptor(0.0)
        gallery = [
            GalleryEntry('close', make_descriptor(0.0, d0=0.1)),
            GalleryEntry('later', make_descriptor(0.0, d0=0.15)),
        ]
        full = find_best_match(query, gallery, 0.6)
        early = find_best_match(query, gallery, 0.6, early_exit=True)

        assert full.id == early.id == 'close'
        assert len(full.matches) == 2
        assert len(early.matches) == 1


class TestFaceMatcher:
    """Test FaceMatcher tolerance handling"""

    def test_default_tolerance(self):
        matcher = FaceMatcher()
        assert matcher.tolerance == 0.6

    def test_uses_default_tolerance(self):
        matcher = FaceMatcher(0.2)
        a = make_descriptor(0.0)
        b = make_descriptor(0.0, d0=0.3)

        assert matcher.compare_faces(a, b).is_match is False
        assert matcher.compare_faces(a, b, 0.5).is_match is True

    def test_set_tolerance(self):
        matcher = FaceMatcher()
        matcher.set_tolerance(0.45)
        assert matcher.tolerance == 0.45
        assert matcher.find_best_match(make_descriptor(), [GalleryEntry('v', make_descriptor())]).tolerance == 0.45

    @pytest.mark.parametrize("value", [0, -0.1, 1.5])
    def test_rejects_out_of_range_tolerance(self, value):
        matcher = FaceMatcher()
        with pytest.raises(ValueError):
            matcher.set_tolerance(value)
        assert matcher.tolerance == 0.6
