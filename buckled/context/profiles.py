from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from buckled.base.models import utcnow
from buckled.context.maintenance import mark_performed, seed_schedule
from buckled.context.matching import ScoredValue, merge_confidence, merge_field
from buckled.profile.models import (
    BudgetRange,
    ServiceHistoryEntry,
    ServiceHistorySummary,
    UserLocation,
    UserSessionData,
    VehicleIdentity,
    VehicleProfile,
    VehicleSpecifications,
)
from buckled.service.models import ExtractedServiceData, VehicleInfo

_IDENTITY_FIELDS = ("year", "make", "model", "vin", "license_plate", "color")
_SPECIFICATION_FIELDS = ("engine_type", "transmission")
_MILEAGE_MIN_CONFIDENCE = 50


def history_entry(data: ExtractedServiceData) -> ServiceHistoryEntry:
    cost = data.pricing.effective_total
    return ServiceHistoryEntry(
        date=data.timestamp,
        service=data.service_info.primary_service,
        mileage=data.vehicle_info.mileage,
        shop_name=data.shop_info.name,
        cost=cost if cost > 0 else None,
        extracted_data_id=data.id,
    )


def create_profile(data: ExtractedServiceData) -> VehicleProfile:
    vehicle = data.vehicle_info
    return VehicleProfile(
        identity=VehicleIdentity(
            year=vehicle.year,
            make=vehicle.make,
            model=vehicle.model,
            vin=vehicle.vin,
            license_plate=vehicle.license_plate,
            color=vehicle.color,
            confidence=vehicle.confidence,
        ),
        specifications=VehicleSpecifications(
            engine_type=vehicle.engine_type,
            transmission=vehicle.transmission,
            mileage=vehicle.mileage,
            last_mileage_update=data.timestamp,
            confidence=vehicle.confidence,
        ),
        service_history=[history_entry(data)],
        maintenance_schedule=seed_schedule(data),
        tags=[data.service_info.category],
    )


def _merged_block(
    block: VehicleIdentity | VehicleSpecifications,
    vehicle: VehicleInfo,
    fields: Sequence[str],
) -> dict[str, Any]:
    merged: dict[str, Any] = {
        name: merge_field(
            ScoredValue(getattr(block, name), block.confidence),
            ScoredValue(getattr(vehicle, name), vehicle.confidence),
        ).value
        for name in fields
    }
    merged["confidence"] = merge_confidence(block.confidence, vehicle.confidence)
    return merged


def update_profile(
    profile: VehicleProfile, data: ExtractedServiceData, now: datetime | None = None
) -> VehicleProfile:
    """Fold a matched extraction into an existing profile."""
    vehicle = data.vehicle_info
    identity = profile.identity
    specifications = profile.specifications

    # A zero confidence block carries nothing worth merging.
    if vehicle.confidence.value > 0:
        identity = identity.model_copy(
            update=_merged_block(identity, vehicle, _IDENTITY_FIELDS)
        )
        specifications = specifications.model_copy(
            update=_merged_block(specifications, vehicle, _SPECIFICATION_FIELDS)
        )
    trusted = vehicle.confidence.value > _MILEAGE_MIN_CONFIDENCE
    if vehicle.mileage is not None and trusted:
        specifications = specifications.model_copy(
            update={"mileage": vehicle.mileage, "last_mileage_update": data.timestamp}
        )

    category = data.service_info.category
    tags = profile.tags if category in profile.tags else [*profile.tags, category]
    return profile.model_copy(
        update={
            "identity": identity,
            "specifications": specifications,
            "service_history": [*profile.service_history, history_entry(data)],
            "maintenance_schedule": mark_performed(profile.maintenance_schedule, data),
            "tags": tags,
            "last_updated": now or utcnow(),
        }
    )


def _top(values: Counter[str], count: int) -> list[str]:
    return [value for value, _ in values.most_common(count)]


def refresh_session(
    session: UserSessionData,
    data: ExtractedServiceData,
    history: Sequence[ExtractedServiceData],
    now: datetime | None = None,
) -> UserSessionData:
    """
    Recompute the session aggregates from the full extraction history and
    fold in location and budget hints from the new extraction.
    """
    now = now or utcnow()
    costs = [item.pricing.effective_total for item in history]
    positive_costs = [cost for cost in costs if cost > 0]
    summary = ServiceHistorySummary(
        total_services=len(history),
        last_service_date=data.timestamp,
        favorite_categories=_top(
            Counter(item.service_info.category for item in history), 3
        ),
        average_spending=(
            sum(positive_costs) / len(positive_costs) if positive_costs else 0
        ),
        frequent_shops=_top(
            Counter(item.shop_info.name for item in history if item.shop_info.name), 3
        ),
    )

    update: dict[str, BaseModel | datetime] = {
        "service_history": summary,
        "last_active": now,
    }

    shop = data.shop_info
    if shop.city and shop.state and shop.zip_code:
        update["location"] = UserLocation(
            zip_code=shop.zip_code,
            city=shop.city,
            state=shop.state,
            coordinates=session.location.coordinates,
            last_updated=now,
        )

    cost = data.pricing.effective_total
    if cost > 0:
        current = session.preferences.budget_range
        update["preferences"] = session.preferences.model_copy(
            update={
                "budget_range": BudgetRange(
                    min=min(current.min, cost * 0.8),
                    max=max(current.max, cost * 1.2),
                )
            }
        )

    return session.model_copy(update=update)
