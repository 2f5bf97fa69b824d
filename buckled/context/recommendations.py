from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from buckled.context.maintenance import estimate_service_cost
from buckled.context.models import URGENCY_RANK, ServiceRecommendation
from buckled.profile.models import CostRange, DueAt, VehicleProfile
from buckled.service.models import ExtractedServiceData, Severity, UrgencyLevel

MAX_RECOMMENDATIONS = 5
MILEAGE_LOOKAHEAD = 1000
_MILEAGE_MEDIUM_WINDOW = 500

_SEVERITY_URGENCY: dict[Severity, UrgencyLevel] = {
    Severity.CRITICAL: UrgencyLevel.HIGH,
    Severity.NEEDED: UrgencyLevel.MEDIUM,
    Severity.RECOMMENDED: UrgencyLevel.LOW,
}


def technician_recommendations(
    data: ExtractedServiceData,
) -> list[ServiceRecommendation]:
    technical = data.technical_info
    urgency = _SEVERITY_URGENCY.get(technical.severity, UrgencyLevel.LOW)
    provider = data.shop_info.name or "service provider"
    return [
        ServiceRecommendation(
            service=item,
            reason="Recommended by technician",
            urgency=urgency,
            estimated_cost=estimate_service_cost(item),
            confidence=technical.confidence.value,
            sources=[f"Technical recommendation from {provider}"],
        )
        for item in technical.recommended_maintenance
    ]


def mileage_recommendations(profile: VehicleProfile) -> list[ServiceRecommendation]:
    current = profile.specifications.mileage or 0
    recommendations = []
    for item in profile.maintenance_schedule:
        if item.due_at is not DueAt.MILEAGE or not item.due_mileage:
            continue
        remaining = item.due_mileage - current
        if not 0 < remaining <= MILEAGE_LOOKAHEAD:
            continue
        recommendations.append(
            ServiceRecommendation(
                service=item.service,
                reason=f"Due in {remaining} miles",
                urgency=(
                    UrgencyLevel.MEDIUM
                    if remaining <= _MILEAGE_MEDIUM_WINDOW
                    else UrgencyLevel.LOW
                ),
                estimated_cost=item.estimated_cost
                or estimate_service_cost(item.service),
                due_mileage=item.due_mileage,
                confidence=85,
                sources=["Maintenance schedule"],
            )
        )
    return recommendations


def urgent_recommendation(data: ExtractedServiceData) -> ServiceRecommendation | None:
    service = data.service_info
    if service.urgency_level not in (UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY):
        return None

    total = data.pricing.final_total
    if total:
        cost = CostRange(min=round(total * 0.8, 2), max=round(total * 1.2, 2))
    else:
        cost = CostRange(min=100, max=500)
    return ServiceRecommendation(
        service=service.primary_service,
        reason=service.recommended_action or "Urgent attention required",
        urgency=service.urgency_level,
        estimated_cost=cost,
        confidence=service.confidence.value,
        sources=["Current service analysis"],
    )


def related_services(
    primary_service: str, history: Iterable[ExtractedServiceData]
) -> list[str]:
    """Secondary services seen with `primary_service` at least twice, top two."""
    counts = Counter(
        secondary
        for data in history
        if data.service_info.primary_service == primary_service
        for secondary in data.service_info.secondary_services
    )
    return [service for service, count in counts.most_common(2) if count >= 2]


def pattern_recommendations(
    data: ExtractedServiceData, history: Iterable[ExtractedServiceData]
) -> list[ServiceRecommendation]:
    return [
        ServiceRecommendation(
            service=service,
            reason="Often performed together with this service",
            urgency=UrgencyLevel.LOW,
            estimated_cost=estimate_service_cost(service),
            confidence=60,
            sources=["Service pattern analysis"],
        )
        for service in related_services(data.service_info.primary_service, history)
    ]


def rank_recommendations(
    recommendations: Iterable[ServiceRecommendation],
    limit: int = MAX_RECOMMENDATIONS,
) -> list[ServiceRecommendation]:
    ranked = sorted(
        recommendations,
        key=lambda rec: (-URGENCY_RANK[rec.urgency], -rec.confidence),
    )
    return ranked[:limit]


def generate_recommendations(
    data: ExtractedServiceData,
    profile: VehicleProfile | None,
    history: Iterable[ExtractedServiceData],
) -> list[ServiceRecommendation]:
    candidates = technician_recommendations(data)
    if profile is not None:
        candidates.extend(mileage_recommendations(profile))
    urgent = urgent_recommendation(data)
    if urgent is not None:
        candidates.append(urgent)
    candidates.extend(pattern_recommendations(data, history))
    return rank_recommendations(candidates)
