from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from buckled.base.models import utcnow
from buckled.profile.models import (
    MaintenanceItem,
    VehicleIdentity,
    VehicleProfile,
    VehicleSpecifications,
)
from buckled.service.models import (
    ConfidenceScore,
    ExtractedServiceData,
    ExtractionSource,
    Pricing,
    RawData,
    ServiceInfo,
    Severity,
    ShopInfo,
    TechnicalInfo,
    Timeline,
    UrgencyLevel,
    VehicleInfo,
)
from buckled.storage.cache import SessionCache
from buckled.storage.store import StorageManager

ExtractionFactory = Callable[..., ExtractedServiceData]
ProfileFactory = Callable[..., VehicleProfile]


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'buckled.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_cache(tmp_path: Path) -> SessionCache:
    return SessionCache(tmp_path / "cache.json")


@pytest.fixture
async def storage(
    db_engine: AsyncEngine, session_cache: SessionCache
) -> StorageManager:
    manager = StorageManager(db_engine, session_cache)
    await manager.initialize()
    return manager


@pytest.fixture
def make_extraction() -> ExtractionFactory:
    """Build an extraction; keywords override the commonly varied fields."""

    def _make(
        service: str = "Oil Change",
        *,
        category: str = "Maintenance",
        urgency: UrgencyLevel = UrgencyLevel.MEDIUM,
        recommended_action: str = "",
        secondary_services: list[str] | None = None,
        make: str | None = "Honda",
        model: str | None = "Civic",
        year: int | None = 2018,
        vin: str | None = None,
        mileage: int | None = None,
        vehicle_confidence: float = 80,
        final_total: float | None = None,
        shop_name: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip_code: str | None = None,
        recommended_maintenance: list[str] | None = None,
        severity: Severity = Severity.ROUTINE,
        is_urgent: bool = False,
        timestamp: datetime | None = None,
        original_text: str | None = None,
    ) -> ExtractedServiceData:
        return ExtractedServiceData(
            timestamp=timestamp or utcnow(),
            source=ExtractionSource.TEXT_INPUT,
            service_info=ServiceInfo(
                primary_service=service,
                secondary_services=secondary_services or [],
                category=category,
                urgency_level=urgency,
                recommended_action=recommended_action,
                confidence=ConfidenceScore(value=80),
            ),
            vehicle_info=VehicleInfo(
                year=year,
                make=make,
                model=model,
                vin=vin,
                mileage=mileage,
                confidence=ConfidenceScore(value=vehicle_confidence),
            ),
            pricing=Pricing(
                final_total=final_total, confidence=ConfidenceScore(value=70)
            ),
            shop_info=ShopInfo(
                name=shop_name,
                city=city,
                state=state,
                zip_code=zip_code,
                confidence=ConfidenceScore(value=60),
            ),
            technical_info=TechnicalInfo(
                recommended_maintenance=recommended_maintenance or [],
                severity=severity,
                confidence=ConfidenceScore(value=75),
            ),
            timeline=Timeline(
                is_urgent=is_urgent, confidence=ConfidenceScore(value=50)
            ),
            raw_data=RawData(original_text=original_text),
        )

    return _make


@pytest.fixture
def make_profile() -> ProfileFactory:
    def _make(
        *,
        make: str | None = "Honda",
        model: str | None = "Civic",
        year: int | None = 2018,
        vin: str | None = None,
        mileage: int | None = None,
        schedule: list[MaintenanceItem] | None = None,
        confidence: float = 80,
    ) -> VehicleProfile:
        return VehicleProfile(
            identity=VehicleIdentity(
                make=make,
                model=model,
                year=year,
                vin=vin,
                confidence=ConfidenceScore(value=confidence),
            ),
            specifications=VehicleSpecifications(
                mileage=mileage, confidence=ConfidenceScore(value=confidence)
            ),
            maintenance_schedule=schedule or [],
        )

    return _make
