from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from buckled.base.models import utcnow
from buckled.base.schemas import CamelModel


class ConfidenceSource(enum.Enum):
    AI_EXTRACTION = "ai_extraction"
    USER_INPUT = "user_input"
    MANUAL_CORRECTION = "manual_correction"
    PATTERN_MATCH = "pattern_match"


class ExtractionSource(enum.Enum):
    DOCUMENT_UPLOAD = "document_upload"
    TEXT_INPUT = "text_input"
    MANUAL_ENTRY = "manual_entry"


class UrgencyLevel(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class Severity(enum.Enum):
    ROUTINE = "routine"
    RECOMMENDED = "recommended"
    NEEDED = "needed"
    CRITICAL = "critical"


class LineItemCategory(enum.Enum):
    PARTS = "parts"
    LABOR = "labor"
    FEE = "fee"
    TAX = "tax"
    DISCOUNT = "discount"


class ConfidenceScore(CamelModel):
    """0-100 score plus provenance. 0 from ai_extraction means the block failed."""

    value: float
    source: ConfidenceSource = ConfidenceSource.AI_EXTRACTION

    @field_validator("value")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return max(0.0, min(100.0, value))

    @classmethod
    def failed(cls) -> ConfidenceScore:
        return cls(value=0, source=ConfidenceSource.AI_EXTRACTION)


class ServiceInfo(CamelModel):
    primary_service: str
    secondary_services: list[str] = Field(default_factory=list)
    category: str = "General"
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    recommended_action: str = ""
    confidence: ConfidenceScore


class VehicleInfo(CamelModel):
    year: int | None = None
    make: str | None = None
    model: str | None = None
    vin: str | None = None
    mileage: int | None = None
    engine_type: str | None = None
    transmission: str | None = None
    color: str | None = None
    license_plate: str | None = None
    confidence: ConfidenceScore


class LineItem(CamelModel):
    item: str
    quantity: float | None = None
    unit_price: float | None = None
    total: float
    category: LineItemCategory


class Pricing(CamelModel):
    parts_total: float | None = None
    labor_total: float | None = None
    subtotal: float | None = None
    taxes: float | None = None
    discounts: float | None = None
    final_total: float | None = None
    currency: str = "USD"
    breakdown: list[LineItem] = Field(default_factory=list)
    confidence: ConfidenceScore

    @property
    def effective_total(self) -> float:
        return self.final_total or self.subtotal or 0.0


class ShopInfo(CamelModel):
    name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    technician_name: str | None = None
    shop_license: str | None = None
    confidence: ConfidenceScore


class TechnicalInfo(CamelModel):
    diagnostic_codes: list[str] = Field(default_factory=list)
    part_numbers: list[str] = Field(default_factory=list)
    service_intervals: int | None = None
    warranty_info: str | None = None
    recommended_maintenance: list[str] = Field(default_factory=list)
    severity: Severity = Severity.ROUTINE
    confidence: ConfidenceScore


class Timeline(CamelModel):
    estimated_completion_time: str | None = None
    scheduled_date: datetime | None = None
    preferred_date: datetime | None = None
    due_date: datetime | None = None
    is_urgent: bool = False
    next_service_date: datetime | None = None
    confidence: ConfidenceScore


class Budget(CamelModel):
    min: float | None = None
    max: float | None = None
    preferred: float | None = None


class UserContext(CamelModel):
    symptoms: list[str] = Field(default_factory=list)
    duration: str | None = None
    frequency: str | None = None
    driving_conditions: list[str] = Field(default_factory=list)
    recent_services: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    budget: Budget | None = None
    confidence: ConfidenceScore


class UploadMetadata(CamelModel):
    file_name: str
    file_size: int
    mime_type: str
    upload_time: datetime


class RawData(CamelModel):
    original_text: str | None = None
    extracted_text: str | None = None
    image_metadata: UploadMetadata | None = None
    ai_response: str = ""
    processing_seconds: float = 0.0


class ExtractedServiceData(CamelModel):
    """One record per user submission, written once by the extraction client."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utcnow)
    source: ExtractionSource
    service_info: ServiceInfo
    vehicle_info: VehicleInfo
    pricing: Pricing
    shop_info: ShopInfo
    technical_info: TechnicalInfo
    timeline: Timeline
    user_context: UserContext | None = None
    raw_data: RawData = Field(default_factory=RawData)

    @property
    def has_vehicle_info(self) -> bool:
        info = self.vehicle_info
        return bool(
            info.make
            or info.model
            or info.year
            or info.vin
            or info.confidence.value > 30
        )
