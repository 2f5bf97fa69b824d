from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from pydantic import Field

from buckled.base.models import utcnow
from buckled.base.schemas import CamelModel
from buckled.profile.models import CostRange, UserSessionData, VehicleProfile
from buckled.service.models import UrgencyLevel

URGENCY_RANK: dict[UrgencyLevel, int] = {
    UrgencyLevel.EMERGENCY: 4,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 1,
}


class AlertType(enum.Enum):
    MAINTENANCE_DUE = "maintenance_due"
    PRICE_ALERT = "price_alert"
    PATTERN_DETECTED = "pattern_detected"
    URGENT_SERVICE = "urgent_service"


class AlertSeverity(enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ServiceRecommendation(CamelModel):
    service: str
    reason: str
    urgency: UrgencyLevel
    estimated_cost: CostRange
    due_by: datetime | None = None
    due_mileage: int | None = None
    confidence: float
    sources: list[str] = Field(default_factory=list)


class CategoryCost(CamelModel):
    category: str
    total: float
    percentage: int


class CostTrends(CamelModel):
    average_spend: float = 0
    cost_by_category: list[CategoryCost] = Field(default_factory=list)
    savings_opportunities: list[str] = Field(default_factory=list)


class SeasonalPattern(CamelModel):
    season: str
    services: list[str]


class ServicePatterns(CamelModel):
    preferred_shops: list[str] = Field(default_factory=list)
    common_services: list[str] = Field(default_factory=list)
    seasonal_patterns: list[SeasonalPattern] = Field(default_factory=list)
    cost_patterns: list[str] = Field(default_factory=list)


class Alert(CamelModel):
    type: AlertType
    message: str
    severity: AlertSeverity
    action_required: bool


class SmartInsights(CamelModel):
    vehicle_id: UUID
    generated_at: datetime = Field(default_factory=utcnow)
    upcoming_services: list[ServiceRecommendation] = Field(default_factory=list)
    cost_trends: CostTrends = Field(default_factory=CostTrends)
    patterns: ServicePatterns = Field(default_factory=ServicePatterns)
    alerts: list[Alert] = Field(default_factory=list)


class ProcessingResult(CamelModel):
    vehicle_profile: VehicleProfile | None = None
    updated_session: UserSessionData
    recommendations: list[ServiceRecommendation] = Field(default_factory=list)
