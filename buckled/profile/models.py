from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import Field

from buckled.base.models import utcnow
from buckled.base.schemas import CamelModel
from buckled.service.models import ConfidenceScore


class DueAt(enum.Enum):
    MILEAGE = "mileage"
    TIME = "time"
    CONDITION = "condition"


class Priority(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CommunicationMethod(enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    TEXT = "text"


class UrgencyPreference(enum.Enum):
    COST = "cost"
    QUALITY = "quality"
    SPEED = "speed"


class CostRange(CamelModel):
    min: float
    max: float


class VehicleIdentity(CamelModel):
    year: int | None = None
    make: str | None = None
    model: str | None = None
    trim: str | None = None
    vin: str | None = None
    license_plate: str | None = None
    color: str | None = None
    nickname: str | None = None
    confidence: ConfidenceScore


class VehicleSpecifications(CamelModel):
    engine_type: str | None = None
    engine_size: str | None = None
    transmission: str | None = None
    drivetrain: str | None = None
    fuel_type: str | None = None
    mileage: int | None = None
    last_mileage_update: datetime = Field(default_factory=utcnow)
    confidence: ConfidenceScore


class ServiceHistoryEntry(CamelModel):
    date: datetime
    service: str
    mileage: int | None = None
    shop_name: str | None = None
    cost: float | None = None
    extracted_data_id: UUID


class MaintenanceItem(CamelModel):
    service: str
    due_at: DueAt = DueAt.MILEAGE
    due_mileage: int | None = None
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    estimated_cost: CostRange | None = None
    last_performed: datetime | None = None


class KnownIssue(CamelModel):
    issue: str
    first_reported: datetime
    last_reported: datetime
    frequency: int = 1
    resolved: bool = False
    cost: float | None = None


class VehicleProfile(CamelModel):
    """
    One physical vehicle, built up from matched extractions.

    Profiles are updated in place and never replaced wholesale. Deleting a
    profile only clears `is_active` so its service history stays traceable.
    """

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
    identity: VehicleIdentity
    specifications: VehicleSpecifications
    service_history: list[ServiceHistoryEntry] = Field(default_factory=list)
    maintenance_schedule: list[MaintenanceItem] = Field(default_factory=list)
    known_issues: list[KnownIssue] = Field(default_factory=list)
    user_notes: str = ""
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True


class BudgetRange(CamelModel):
    min: float = 50
    max: float = 1000


class UserPreferences(CamelModel):
    preferred_shops: list[str] = Field(default_factory=list)
    budget_range: BudgetRange = Field(default_factory=BudgetRange)
    service_radius: float = 25
    preferred_brands: list[str] = Field(default_factory=list)
    communication_method: CommunicationMethod = CommunicationMethod.EMAIL
    urgency_preference: UrgencyPreference = UrgencyPreference.QUALITY


class Coordinates(CamelModel):
    lat: float
    lng: float


class UserLocation(CamelModel):
    zip_code: str | None = None
    city: str | None = None
    state: str | None = None
    coordinates: Coordinates | None = None
    last_updated: datetime = Field(default_factory=utcnow)


class ServiceHistorySummary(CamelModel):
    total_services: int = 0
    last_service_date: datetime | None = None
    favorite_categories: list[str] = Field(default_factory=list)
    average_spending: float = 0
    frequent_shops: list[str] = Field(default_factory=list)


class UserSessionData(CamelModel):
    """Preferences, location and derived service aggregates for the current user."""

    session_id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    location: UserLocation = Field(default_factory=UserLocation)
    service_history: ServiceHistorySummary = Field(
        default_factory=ServiceHistorySummary
    )
