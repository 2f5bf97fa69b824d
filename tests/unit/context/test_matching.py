from collections.abc import Callable

import pytest

from buckled.context.matching import (
    UPDATE_THRESHOLD,
    ScoredValue,
    find_best_match,
    match_score,
    merge_confidence,
    merge_field,
)
from buckled.profile.models import VehicleProfile
from buckled.service.models import ConfidenceScore, ConfidenceSource, VehicleInfo

ProfileFactory = Callable[..., VehicleProfile]


def _vehicle(**fields: object) -> VehicleInfo:
    return VehicleInfo(confidence=ConfidenceScore(value=80), **fields)


class TestMatchScore:
    def test_same_vin_and_make_in_other_case(
        self, make_profile: ProfileFactory
    ) -> None:
        profile = make_profile(
            make="Honda", model=None, year=None, vin="1HGCM82633A004352"
        )
        vehicle = _vehicle(make="HONDA", vin="1HGCM82633A004352")

        assert match_score(vehicle, profile) >= UPDATE_THRESHOLD

    def test_counts_only_shared_fields(self, make_profile: ProfileFactory) -> None:
        profile = make_profile(make="Honda", model="Civic", year=2018)

        assert match_score(_vehicle(year=2019), profile) == 0.4
        assert match_score(_vehicle(make="Toyota"), profile) == 0.0

    def test_no_shared_fields_scores_zero(self, make_profile: ProfileFactory) -> None:
        profile = make_profile(make=None, model=None, year=None)

        assert match_score(_vehicle(make="Honda"), profile) == 0.0

    def test_full_match(self, make_profile: ProfileFactory) -> None:
        profile = make_profile()
        vehicle = _vehicle(make="honda", model="civic", year=2018)

        assert match_score(vehicle, profile) == pytest.approx((0.8 + 0.8 + 0.6) / 3)


class TestFindBestMatch:
    def test_picks_highest_scoring_profile(self, make_profile: ProfileFactory) -> None:
        civic = make_profile(make="Honda", model="Civic")
        camry = make_profile(make="Toyota", model="Camry")

        best, score = find_best_match(
            _vehicle(make="Toyota", model="Camry"), [civic, camry]
        )

        assert best is camry
        assert score == 0.8

    def test_no_profiles(self) -> None:
        assert find_best_match(_vehicle(make="Honda"), []) == (None, 0.0)


class TestMergeConfidence:
    def test_weights_by_source_reliability(self) -> None:
        merged = merge_confidence(
            ConfidenceScore(value=80, source=ConfidenceSource.AI_EXTRACTION),
            ConfidenceScore(value=60, source=ConfidenceSource.USER_INPUT),
        )

        # (80 * 0.7 + 60 * 0.8) / 1.5
        assert merged.value == 69
        assert merged.source is ConfidenceSource.AI_EXTRACTION

    def test_manual_correction_is_sticky(self) -> None:
        merged = merge_confidence(
            ConfidenceScore(value=100, source=ConfidenceSource.MANUAL_CORRECTION),
            ConfidenceScore(value=40),
        )

        assert merged.source is ConfidenceSource.MANUAL_CORRECTION


class TestMergeField:
    def test_missing_value_never_overwrites(self) -> None:
        merged = merge_field(
            ScoredValue("Civic", ConfidenceScore(value=40)),
            ScoredValue(None, ConfidenceScore(value=95)),
        )

        assert merged.value == "Civic"

    def test_fills_missing_value(self) -> None:
        merged = merge_field(
            ScoredValue(None, ConfidenceScore(value=90)),
            ScoredValue("Civic", ConfidenceScore(value=30)),
        )

        assert merged.value == "Civic"

    def test_more_confident_value_wins(self) -> None:
        merged = merge_field(
            ScoredValue("Civic", ConfidenceScore(value=90)),
            ScoredValue("Civc", ConfidenceScore(value=50)),
        )

        assert merged.value == "Civic"

    def test_tie_goes_to_incoming(self) -> None:
        merged = merge_field(
            ScoredValue(2018, ConfidenceScore(value=70)),
            ScoredValue(2019, ConfidenceScore(value=70)),
        )

        assert merged.value == 2019
        assert merged.confidence.value == 70
