from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from buckled.profile.models import VehicleProfile
from buckled.service.models import ConfidenceScore, ConfidenceSource, VehicleInfo

T = TypeVar("T")

UPDATE_THRESHOLD = 0.7
RELATED_THRESHOLD = 0.5

SOURCE_RELIABILITY: dict[ConfidenceSource, float] = {
    ConfidenceSource.MANUAL_CORRECTION: 1.0,
    ConfidenceSource.USER_INPUT: 0.8,
    ConfidenceSource.AI_EXTRACTION: 0.7,
    ConfidenceSource.PATTERN_MATCH: 0.5,
}
_UNKNOWN_RELIABILITY = 0.5

_VIN_WEIGHT = 1.0
_MAKE_WEIGHT = 0.8
_MODEL_WEIGHT = 0.8
_SAME_YEAR_WEIGHT = 0.6
_ADJACENT_YEAR_WEIGHT = 0.4


def match_score(vehicle: VehicleInfo, profile: VehicleProfile) -> float:
    """
    Weighted similarity between an extraction's vehicle and a profile.

    Only fields present on both sides count towards the average; with none
    in common the score is 0.
    """
    identity = profile.identity
    scores: list[float] = []

    if vehicle.vin and identity.vin:
        scores.append(_VIN_WEIGHT if vehicle.vin == identity.vin else 0.0)
    if vehicle.make and identity.make:
        same = vehicle.make.lower() == identity.make.lower()
        scores.append(_MAKE_WEIGHT if same else 0.0)
    if vehicle.model and identity.model:
        same = vehicle.model.lower() == identity.model.lower()
        scores.append(_MODEL_WEIGHT if same else 0.0)
    if vehicle.year and identity.year:
        gap = abs(vehicle.year - identity.year)
        if gap == 0:
            scores.append(_SAME_YEAR_WEIGHT)
        elif gap == 1:
            scores.append(_ADJACENT_YEAR_WEIGHT)
        else:
            scores.append(0.0)

    return sum(scores) / len(scores) if scores else 0.0


def find_best_match(
    vehicle: VehicleInfo, profiles: Iterable[VehicleProfile]
) -> tuple[VehicleProfile | None, float]:
    best: VehicleProfile | None = None
    best_score = 0.0
    for profile in profiles:
        score = match_score(vehicle, profile)
        if score > best_score:
            best, best_score = profile, score
    return best, best_score


def merge_confidence(
    existing: ConfidenceScore,
    incoming: ConfidenceScore,
    reliability: Mapping[ConfidenceSource, float] = SOURCE_RELIABILITY,
) -> ConfidenceScore:
    existing_weight = reliability.get(existing.source, _UNKNOWN_RELIABILITY)
    incoming_weight = reliability.get(incoming.source, _UNKNOWN_RELIABILITY)
    value = (existing.value * existing_weight + incoming.value * incoming_weight) / (
        existing_weight + incoming_weight
    )
    manual = ConfidenceSource.MANUAL_CORRECTION
    source = (
        manual
        if manual in (existing.source, incoming.source)
        else ConfidenceSource.AI_EXTRACTION
    )
    return ConfidenceScore(value=round(value), source=source)


@dataclass(frozen=True)
class ScoredValue(Generic[T]):
    value: T | None
    confidence: ConfidenceScore


def merge_field(
    existing: ScoredValue[T],
    incoming: ScoredValue[T],
    reliability: Mapping[ConfidenceSource, float] = SOURCE_RELIABILITY,
) -> ScoredValue[T]:
    """
    Combine two observations of the same field.

    A missing value never overwrites a known one. Between two values the one
    with the higher reliability-weighted confidence wins, ties going to the
    newer observation.
    """
    confidence = merge_confidence(existing.confidence, incoming.confidence, reliability)
    if incoming.value is None:
        return ScoredValue(existing.value, confidence)
    if existing.value is None:
        return ScoredValue(incoming.value, confidence)

    def weighted(observation: ScoredValue[T]) -> float:
        source_weight = reliability.get(
            observation.confidence.source, _UNKNOWN_RELIABILITY
        )
        return observation.confidence.value * source_weight

    if weighted(incoming) >= weighted(existing):
        return ScoredValue(incoming.value, confidence)
    return ScoredValue(existing.value, confidence)
