from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import (
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from buckled.base.schemas import CamelModel
from buckled.service.models import (
    Budget,
    ConfidenceScore,
    ExtractedServiceData,
    ExtractionSource,
    LineItem,
    LineItemCategory,
    Pricing,
    RawData,
    ServiceInfo,
    Severity,
    ShopInfo,
    TechnicalInfo,
    Timeline,
    UrgencyLevel,
    UserContext,
    VehicleInfo,
)


class _LenientSchema(CamelModel):
    """
    Collaborator output is best effort: a field that fails validation falls
    back to its default instead of failing the whole record.
    """

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_error(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        if isinstance(value, str) and not value.strip():
            value = None
        try:
            return handler(value)
        except ValidationError:
            pass
        if isinstance(value, str):
            for candidate in (
                value.strip().lower(),
                value.replace("$", "").replace(",", "").strip(),
            ):
                try:
                    return handler(candidate)
                except ValidationError:
                    continue
        if info.field_name is None:
            return None
        return cls.model_fields[info.field_name].get_default(call_default_factory=True)


class _ServiceInfoSchema(_LenientSchema):
    primary_service: str | None = None
    secondary_services: list[str] = Field(default_factory=list)
    category: str | None = None
    urgency_level: UrgencyLevel | None = None
    recommended_action: str | None = None
    confidence: float | None = None


class _VehicleInfoSchema(_LenientSchema):
    year: int | None = None
    make: str | None = None
    model: str | None = None
    vin: str | None = None
    mileage: int | None = None
    engine_type: str | None = None
    transmission: str | None = None
    color: str | None = None
    license_plate: str | None = None
    confidence: float | None = None


class _LineItemSchema(_LenientSchema):
    item: str | None = None
    quantity: float | None = None
    unit_price: float | None = None
    total: float | None = None
    category: LineItemCategory | None = None


class _PricingSchema(_LenientSchema):
    parts_total: float | None = None
    labor_total: float | None = None
    subtotal: float | None = None
    taxes: float | None = None
    discounts: float | None = None
    final_total: float | None = None
    currency: str | None = None
    breakdown: list[_LineItemSchema] = Field(default_factory=list)
    confidence: float | None = None


class _ShopInfoSchema(_LenientSchema):
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
    confidence: float | None = None


class _TechnicalInfoSchema(_LenientSchema):
    diagnostic_codes: list[str] = Field(default_factory=list)
    part_numbers: list[str] = Field(default_factory=list)
    service_intervals: int | None = None
    warranty_info: str | None = None
    recommended_maintenance: list[str] = Field(default_factory=list)
    severity: Severity | None = None
    confidence: float | None = None


class _TimelineSchema(_LenientSchema):
    estimated_completion_time: str | None = None
    scheduled_date: datetime | None = None
    preferred_date: datetime | None = None
    due_date: datetime | None = None
    is_urgent: bool | None = None
    next_service_date: datetime | None = None
    confidence: float | None = None


class _BudgetSchema(_LenientSchema):
    min: float | None = None
    max: float | None = None
    preferred: float | None = None


class _UserContextSchema(_LenientSchema):
    symptoms: list[str] = Field(default_factory=list)
    duration: str | None = None
    frequency: str | None = None
    driving_conditions: list[str] = Field(default_factory=list)
    recent_services: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    budget: _BudgetSchema | None = None
    confidence: float | None = None


class _ExtractionSchema(_LenientSchema):
    """Intermediate shape of the collaborator's JSON answer."""

    service_info: _ServiceInfoSchema = Field(default_factory=_ServiceInfoSchema)
    vehicle_info: _VehicleInfoSchema = Field(default_factory=_VehicleInfoSchema)
    pricing: _PricingSchema = Field(default_factory=_PricingSchema)
    shop_info: _ShopInfoSchema = Field(default_factory=_ShopInfoSchema)
    technical_info: _TechnicalInfoSchema = Field(default_factory=_TechnicalInfoSchema)
    timeline: _TimelineSchema = Field(default_factory=_TimelineSchema)
    user_context: _UserContextSchema | None = None
    extracted_text: str | None = None


@dataclass(frozen=True)
class BlockDefaults:
    """
    Confidence used for a block when the collaborator omits one.

    None marks a block that is never extracted in this mode; it is left empty
    with a failed confidence.
    """

    service: float
    vehicle: float
    pricing: float | None
    shop: float | None
    technical: float
    timeline: float
    user_context: float | None
    recommended_action: str


DOCUMENT_DEFAULTS = BlockDefaults(
    service=50,
    vehicle=40,
    pricing=30,
    shop=40,
    technical=35,
    timeline=40,
    user_context=None,
    recommended_action="Review the extracted information",
)

TEXT_DEFAULTS = BlockDefaults(
    service=60,
    vehicle=20,
    pricing=None,
    shop=None,
    technical=50,
    timeline=45,
    user_context=70,
    recommended_action="Get professional diagnosis",
)


def _confidence(value: float | None, default: float) -> ConfidenceScore:
    return ConfidenceScore(value=default if value is None else value)


def _aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _pricing(schema: _PricingSchema, default: float | None) -> Pricing:
    if default is None:
        return Pricing(confidence=ConfidenceScore.failed())
    return Pricing(
        parts_total=schema.parts_total,
        labor_total=schema.labor_total,
        subtotal=schema.subtotal,
        taxes=schema.taxes,
        discounts=schema.discounts,
        final_total=schema.final_total,
        currency=schema.currency or "USD",
        breakdown=[
            LineItem(
                item=line.item,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=line.total or 0.0,
                category=line.category or LineItemCategory.PARTS,
            )
            for line in schema.breakdown
            if line.item
        ],
        confidence=_confidence(schema.confidence, default),
    )


def _shop(schema: _ShopInfoSchema, default: float | None) -> ShopInfo:
    if default is None:
        return ShopInfo(confidence=ConfidenceScore.failed())
    return ShopInfo(
        **schema.model_dump(exclude={"confidence"}),
        confidence=_confidence(schema.confidence, default),
    )


def _user_context(
    schema: _UserContextSchema | None, default: float | None
) -> UserContext | None:
    if default is None:
        return None
    schema = schema or _UserContextSchema()
    budget = None
    if schema.budget is not None:
        budget = Budget(**schema.budget.model_dump())
    return UserContext(
        **schema.model_dump(exclude={"budget", "confidence"}),
        budget=budget,
        confidence=_confidence(schema.confidence, default),
    )


def decode_extraction(
    payload: dict[str, Any],
    *,
    source: ExtractionSource,
    defaults: BlockDefaults,
    fallback_service: str,
    raw_data: RawData,
) -> ExtractedServiceData:
    """Build a fully populated record from a loosely shaped collaborator answer."""
    schema = _ExtractionSchema.model_validate(payload)
    service = schema.service_info
    vehicle = schema.vehicle_info
    technical = schema.technical_info
    timeline = schema.timeline

    if raw_data.extracted_text is None and schema.extracted_text:
        raw_data = raw_data.model_copy(update={"extracted_text": schema.extracted_text})

    return ExtractedServiceData(
        source=source,
        service_info=ServiceInfo(
            primary_service=service.primary_service or fallback_service,
            secondary_services=service.secondary_services,
            category=service.category or "General",
            urgency_level=service.urgency_level or UrgencyLevel.MEDIUM,
            recommended_action=service.recommended_action
            or defaults.recommended_action,
            confidence=_confidence(service.confidence, defaults.service),
        ),
        vehicle_info=VehicleInfo(
            **vehicle.model_dump(exclude={"confidence"}),
            confidence=_confidence(vehicle.confidence, defaults.vehicle),
        ),
        pricing=_pricing(schema.pricing, defaults.pricing),
        shop_info=_shop(schema.shop_info, defaults.shop),
        technical_info=TechnicalInfo(
            diagnostic_codes=technical.diagnostic_codes,
            part_numbers=technical.part_numbers,
            service_intervals=technical.service_intervals,
            warranty_info=technical.warranty_info,
            recommended_maintenance=technical.recommended_maintenance,
            severity=technical.severity or Severity.ROUTINE,
            confidence=_confidence(technical.confidence, defaults.technical),
        ),
        timeline=Timeline(
            estimated_completion_time=timeline.estimated_completion_time,
            scheduled_date=_aware(timeline.scheduled_date),
            preferred_date=_aware(timeline.preferred_date),
            due_date=_aware(timeline.due_date),
            is_urgent=bool(timeline.is_urgent),
            next_service_date=_aware(timeline.next_service_date),
            confidence=_confidence(timeline.confidence, defaults.timeline),
        ),
        user_context=_user_context(schema.user_context, defaults.user_context),
        raw_data=raw_data,
    )
