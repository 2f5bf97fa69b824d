from collections.abc import Callable

import pytest

from buckled.context.models import ServiceRecommendation
from buckled.context.recommendations import (
    generate_recommendations,
    mileage_recommendations,
    rank_recommendations,
    related_services,
    technician_recommendations,
    urgent_recommendation,
)
from buckled.profile.models import CostRange, MaintenanceItem, VehicleProfile
from buckled.service.models import ExtractedServiceData, Severity, UrgencyLevel

ExtractionFactory = Callable[..., ExtractedServiceData]
ProfileFactory = Callable[..., VehicleProfile]


def _recommendation(urgency: UrgencyLevel, confidence: float) -> ServiceRecommendation:
    return ServiceRecommendation(
        service=f"{urgency.value} {confidence}",
        reason="test",
        urgency=urgency,
        estimated_cost=CostRange(min=10, max=20),
        confidence=confidence,
    )


class TestMileageRecommendations:
    def test_lookahead_window_boundaries(self, make_profile: ProfileFactory) -> None:
        profile = make_profile(
            mileage=10000,
            schedule=[
                MaintenanceItem(service="Oil Change", due_mileage=11000),
                MaintenanceItem(service="Tire Rotation", due_mileage=11001),
                MaintenanceItem(service="Air Filter", due_mileage=10500),
                MaintenanceItem(service="Brake Inspection", due_mileage=10000),
            ],
        )

        recommendations = mileage_recommendations(profile)

        by_service = {rec.service: rec for rec in recommendations}
        assert set(by_service) == {"Oil Change", "Air Filter"}
        assert by_service["Oil Change"].urgency is UrgencyLevel.LOW
        assert by_service["Oil Change"].reason == "Due in 1000 miles"
        assert by_service["Air Filter"].urgency is UrgencyLevel.MEDIUM


class TestUrgentRecommendation:
    def test_cost_range_follows_quoted_total(
        self, make_extraction: ExtractionFactory
    ) -> None:
        data = make_extraction(
            "Brake Pad Replacement", urgency=UrgencyLevel.HIGH, final_total=400
        )

        recommendation = urgent_recommendation(data)

        assert recommendation is not None
        assert recommendation.estimated_cost == CostRange(min=320, max=480)
        assert recommendation.urgency is UrgencyLevel.HIGH
        assert recommendation.reason == "Urgent attention required"

    def test_default_cost_range_without_total(
        self, make_extraction: ExtractionFactory
    ) -> None:
        data = make_extraction(urgency=UrgencyLevel.EMERGENCY)

        recommendation = urgent_recommendation(data)

        assert recommendation is not None
        assert recommendation.estimated_cost == CostRange(min=100, max=500)

    def test_nothing_for_routine_service(
        self, make_extraction: ExtractionFactory
    ) -> None:
        assert urgent_recommendation(make_extraction()) is None


class TestTechnicianRecommendations:
    def test_severity_sets_urgency(self, make_extraction: ExtractionFactory) -> None:
        data = make_extraction(
            recommended_maintenance=["Replace rotors", "Battery test"],
            severity=Severity.CRITICAL,
            shop_name="Main St Garage",
        )

        recommendations = technician_recommendations(data)

        assert [rec.service for rec in recommendations] == [
            "Replace rotors",
            "Battery test",
        ]
        assert all(rec.urgency is UrgencyLevel.HIGH for rec in recommendations)
        assert recommendations[1].estimated_cost == CostRange(min=100, max=200)
        assert recommendations[0].sources == [
            "Technical recommendation from Main St Garage"
        ]


class TestRelatedServices:
    def test_needs_two_cooccurrences(self, make_extraction: ExtractionFactory) -> None:
        history = [
            make_extraction(secondary_services=["Tire Rotation", "Wiper Blades"]),
            make_extraction(secondary_services=["Tire Rotation"]),
            make_extraction("Brake Service", secondary_services=["Wiper Blades"]),
        ]

        assert related_services("Oil Change", history) == ["Tire Rotation"]


class TestRankRecommendations:
    def test_orders_by_urgency_then_confidence(self) -> None:
        ranked = rank_recommendations(
            [
                _recommendation(UrgencyLevel.LOW, 99),
                _recommendation(UrgencyLevel.HIGH, 50),
                _recommendation(UrgencyLevel.HIGH, 90),
                _recommendation(UrgencyLevel.EMERGENCY, 10),
            ]
        )

        assert [(rec.urgency, rec.confidence) for rec in ranked] == [
            (UrgencyLevel.EMERGENCY, 10),
            (UrgencyLevel.HIGH, 90),
            (UrgencyLevel.HIGH, 50),
            (UrgencyLevel.LOW, 99),
        ]

    @pytest.mark.parametrize("count", [0, 3, 8])
    def test_keeps_at_most_five(self, count: int) -> None:
        ranked = rank_recommendations(
            _recommendation(UrgencyLevel.MEDIUM, index) for index in range(count)
        )

        assert len(ranked) == min(count, 5)


class TestGenerateRecommendations:
    def test_combines_all_sources(
        self, make_extraction: ExtractionFactory, make_profile: ProfileFactory
    ) -> None:
        data = make_extraction(
            "Brake Service",
            urgency=UrgencyLevel.HIGH,
            final_total=300,
            recommended_maintenance=["Brake fluid flush"],
            severity=Severity.NEEDED,
        )
        profile = make_profile(
            mileage=20000,
            schedule=[MaintenanceItem(service="Oil Change", due_mileage=20400)],
        )

        recommendations = generate_recommendations(data, profile, [data])

        assert [rec.service for rec in recommendations] == [
            "Brake Service",
            "Oil Change",
            "Brake fluid flush",
        ]

    def test_without_profile(self, make_extraction: ExtractionFactory) -> None:
        assert generate_recommendations(make_extraction(), None, []) == []
