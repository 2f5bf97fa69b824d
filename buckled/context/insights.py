from __future__ import annotations

import math
from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import datetime

from buckled.context.maintenance import estimate_service_cost
from buckled.context.matching import RELATED_THRESHOLD, match_score
from buckled.context.models import (
    URGENCY_RANK,
    Alert,
    AlertSeverity,
    AlertType,
    CategoryCost,
    CostTrends,
    SeasonalPattern,
    ServicePatterns,
    ServiceRecommendation,
    SmartInsights,
)
from buckled.profile.models import DueAt, Priority, VehicleProfile
from buckled.service.models import ExtractedServiceData, UrgencyLevel

UPCOMING_MILEAGE_WINDOW = 2000
UPCOMING_DAYS_WINDOW = 30
EXPENSIVE_SERVICE = 200

_PRIORITY_URGENCY: dict[Priority, UrgencyLevel] = {
    Priority.LOW: UrgencyLevel.LOW,
    Priority.MEDIUM: UrgencyLevel.MEDIUM,
    Priority.HIGH: UrgencyLevel.HIGH,
}

# Meteorological seasons, northern hemisphere.
_SEASONS = {
    12: "Winter", 1: "Winter", 2: "Winter",
    3: "Spring", 4: "Spring", 5: "Spring",
    6: "Summer", 7: "Summer", 8: "Summer",
    9: "Fall", 10: "Fall", 11: "Fall",
}  # fmt: skip
_SEASON_ORDER = ("Winter", "Spring", "Summer", "Fall")


def vehicle_history(
    profile: VehicleProfile, all_data: Sequence[ExtractedServiceData]
) -> list[ExtractedServiceData]:
    return [
        data
        for data in all_data
        if match_score(data.vehicle_info, profile) > RELATED_THRESHOLD
    ]


def upcoming_services(
    profile: VehicleProfile, now: datetime
) -> list[ServiceRecommendation]:
    current = profile.specifications.mileage or 0
    upcoming = []
    for item in profile.maintenance_schedule:
        reason: str | None = None
        if item.due_at is DueAt.MILEAGE and item.due_mileage:
            remaining = item.due_mileage - current
            if remaining <= UPCOMING_MILEAGE_WINDOW:
                reason = "Overdue" if remaining <= 0 else f"Due in {remaining} miles"
        elif item.due_at is DueAt.TIME and item.due_date:
            days = math.ceil((item.due_date - now).total_seconds() / 86400)
            if days <= UPCOMING_DAYS_WINDOW:
                reason = "Overdue" if days <= 0 else f"Due in {days} days"
        if reason is None:
            continue
        upcoming.append(
            ServiceRecommendation(
                service=item.service,
                reason=reason,
                urgency=_PRIORITY_URGENCY[item.priority],
                estimated_cost=item.estimated_cost
                or estimate_service_cost(item.service),
                due_by=item.due_date,
                due_mileage=item.due_mileage,
                confidence=90,
                sources=["Maintenance schedule"],
            )
        )
    return sorted(upcoming, key=lambda rec: -URGENCY_RANK[rec.urgency])


def _savings_opportunities(history: Sequence[ExtractedServiceData]) -> list[str]:
    opportunities = []
    expensive = [
        data
        for data in history
        if (data.pricing.final_total or 0) > EXPENSIVE_SERVICE
    ]
    if len(expensive) > 2:
        opportunities.append("Consider bundling services to save on labor costs")
    shops = {data.shop_info.name for data in history if data.shop_info.name}
    if len(shops) > 3:
        opportunities.append("Using fewer shops may lead to loyalty discounts")
    return opportunities


def cost_trends(history: Sequence[ExtractedServiceData]) -> CostTrends:
    priced = [
        (data.service_info.category, data.pricing.effective_total)
        for data in history
        if data.pricing.effective_total > 0
    ]
    total_spent = sum(cost for _, cost in priced)

    by_category: defaultdict[str, float] = defaultdict(float)
    for category, cost in priced:
        by_category[category] += cost

    breakdown = [
        CategoryCost(
            category=category,
            total=total,
            percentage=round(total / total_spent * 100),
        )
        for category, total in by_category.items()
    ]
    return CostTrends(
        average_spend=total_spent / max(1, len(history)),
        cost_by_category=sorted(breakdown, key=lambda entry: -entry.total),
        savings_opportunities=_savings_opportunities(history),
    )


def _seasonal_patterns(
    history: Sequence[ExtractedServiceData],
) -> list[SeasonalPattern]:
    by_season: defaultdict[str, list[str]] = defaultdict(list)
    for data in sorted(history, key=lambda data: data.timestamp):
        services = by_season[_SEASONS[data.timestamp.month]]
        if data.service_info.primary_service not in services:
            services.append(data.service_info.primary_service)
    return [
        SeasonalPattern(season=season, services=by_season[season])
        for season in _SEASON_ORDER
        if season in by_season
    ]


def _cost_patterns(history: Sequence[ExtractedServiceData]) -> list[str]:
    costs = [
        data.pricing.effective_total
        for data in history
        if data.pricing.effective_total > 0
    ]
    if not costs:
        return []
    patterns = []
    average = sum(costs) / len(costs)
    expensive = sum(1 for cost in costs if cost > average * 1.5)
    if expensive / len(costs) > 0.3:
        patterns.append("Tends to require expensive repairs")
    if all(cost < EXPENSIVE_SERVICE for cost in costs):
        patterns.append("Mostly routine maintenance")
    return patterns


def detect_patterns(history: Sequence[ExtractedServiceData]) -> ServicePatterns:
    shops = Counter(data.shop_info.name for data in history if data.shop_info.name)
    services = Counter(data.service_info.primary_service for data in history)
    return ServicePatterns(
        preferred_shops=[shop for shop, _ in shops.most_common(3)],
        common_services=[service for service, _ in services.most_common(5)],
        seasonal_patterns=_seasonal_patterns(history),
        cost_patterns=_cost_patterns(history),
    )


def generate_alerts(
    profile: VehicleProfile, history: Sequence[ExtractedServiceData]
) -> list[Alert]:
    alerts = []
    current = profile.specifications.mileage or 0
    overdue = [
        item
        for item in profile.maintenance_schedule
        if item.due_at is DueAt.MILEAGE
        and item.due_mileage
        and current > item.due_mileage
    ]
    if overdue:
        alerts.append(
            Alert(
                type=AlertType.MAINTENANCE_DUE,
                message=f"{len(overdue)} maintenance item(s) overdue",
                severity=AlertSeverity.WARNING,
                action_required=True,
            )
        )
    if any(
        data.service_info.urgency_level in (UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY)
        for data in history
    ):
        alerts.append(
            Alert(
                type=AlertType.URGENT_SERVICE,
                message="Urgent service required based on recent analysis",
                severity=AlertSeverity.ERROR,
                action_required=True,
            )
        )
    return alerts


def build_insights(
    profile: VehicleProfile, all_data: Sequence[ExtractedServiceData], now: datetime
) -> SmartInsights:
    history = vehicle_history(profile, all_data)
    return SmartInsights(
        vehicle_id=profile.id,
        generated_at=now,
        upcoming_services=upcoming_services(profile, now),
        cost_trends=cost_trends(history),
        patterns=detect_patterns(history),
        alerts=generate_alerts(profile, history),
    )
