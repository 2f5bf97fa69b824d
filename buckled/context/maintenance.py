from __future__ import annotations

from buckled.profile.models import CostRange, DueAt, MaintenanceItem, Priority
from buckled.service.models import ExtractedServiceData

# (service, interval in miles, priority)
SCHEDULE_SEED: tuple[tuple[str, int, Priority], ...] = (
    ("Oil Change", 5000, Priority.MEDIUM),
    ("Tire Rotation", 7500, Priority.LOW),
    ("Air Filter", 15000, Priority.LOW),
    ("Brake Inspection", 20000, Priority.MEDIUM),
    ("Transmission Service", 50000, Priority.HIGH),
)

# Substring of the lower-cased service name -> typical cost; first hit wins.
_COST_ESTIMATES: tuple[tuple[str, float, float], ...] = (
    ("oil change", 30, 80),
    ("brake", 150, 400),
    ("tire", 100, 300),
    ("battery", 100, 200),
    ("transmission", 200, 800),
    ("engine", 300, 1500),
    ("air filter", 20, 60),
    ("alignment", 80, 150),
)
_DEFAULT_ESTIMATE = (50.0, 300.0)


def estimate_service_cost(service: str) -> CostRange:
    name = service.lower()
    for key, low, high in _COST_ESTIMATES:
        if key in name:
            return CostRange(min=low, max=high)
    low, high = _DEFAULT_ESTIMATE
    return CostRange(min=low, max=high)


def seed_schedule(data: ExtractedServiceData) -> list[MaintenanceItem]:
    mileage = data.vehicle_info.mileage or 0
    performed = data.service_info.primary_service
    return [
        MaintenanceItem(
            service=service,
            due_at=DueAt.MILEAGE,
            due_mileage=mileage + interval,
            priority=priority,
            estimated_cost=estimate_service_cost(service),
            last_performed=data.timestamp if performed == service else None,
        )
        for service, interval, priority in SCHEDULE_SEED
    ]


def mark_performed(
    schedule: list[MaintenanceItem], data: ExtractedServiceData
) -> list[MaintenanceItem]:
    performed = data.service_info.primary_service.lower()
    return [
        item.model_copy(update={"last_performed": data.timestamp})
        if performed and performed in item.service.lower()
        else item
        for item in schedule
    ]
