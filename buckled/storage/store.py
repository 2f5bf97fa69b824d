from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from buckled.base.errors import InvalidPostalCodeError, ProfileNotFoundError
from buckled.base.models import BaseDbModel, utcnow
from buckled.base.schemas import CamelModel
from buckled.profile.models import (
    Coordinates,
    UserLocation,
    UserPreferences,
    UserSessionData,
    VehicleProfile,
)
from buckled.service.models import ExtractedServiceData, UrgencyLevel
from buckled.storage.cache import SessionCache
from buckled.storage.models import (
    DELETION_POLICIES,
    DeletionPolicy,
    ExtractedServiceRecord,
    UserSessionRecord,
    VehicleProfileRecord,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
_ZIP_CODE = re.compile(r"^\d{5}(-\d{4})?$")
_URGENT_LEVELS = frozenset({UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY})

_Record = ExtractedServiceRecord | VehicleProfileRecord | UserSessionRecord


class ServiceCount(CamelModel):
    service: str
    count: int


class ShopCount(CamelModel):
    shop: str
    count: int


class ServiceStats(CamelModel):
    total_services: int = 0
    total_spent: float = 0
    average_service_cost: float = 0
    top_services: list[ServiceCount] = Field(default_factory=list)
    top_shops: list[ShopCount] = Field(default_factory=list)


class QuickStats(CamelModel):
    recent_services: int = 0
    total_vehicles: int = 0
    pending_actions: int = 0


class DataExport(CamelModel):
    """Backup document holding all three collections."""

    export_date: datetime = Field(default_factory=utcnow)
    version: str = EXPORT_VERSION
    extracted_data: list[ExtractedServiceData] = Field(default_factory=list)
    vehicle_profiles: list[VehicleProfile] = Field(default_factory=list)
    user_session: UserSessionData | None = None


def _searchable_fields(data: ExtractedServiceData) -> Iterable[str | None]:
    yield data.service_info.primary_service
    yield data.service_info.category
    yield data.vehicle_info.make
    yield data.vehicle_info.model
    yield data.shop_info.name
    yield data.raw_data.original_text
    yield data.raw_data.extracted_text
    yield from data.service_info.secondary_services
    if data.user_context is not None:
        yield from data.user_context.symptoms
    yield from data.technical_info.recommended_maintenance


class StorageManager:
    """
    Durable store for extractions, vehicle profiles and the user session.

    The schema is created lazily on first use. Every public operation runs in
    its own transaction; nothing spans collections.
    """

    def __init__(self, engine: AsyncEngine, cache: SessionCache | None = None) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._cache = cache
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(BaseDbModel.metadata.create_all)
            self._schema_ready = True
            logger.info("Storage initialized on %s", self._engine.url)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        await self.initialize()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _upsert(
        self,
        session: AsyncSession,
        record_type: type[_Record],
        record_id: UUID,
        payload: Any,
    ) -> None:
        record = await session.get(record_type, record_id)
        if record is None:
            record = record_type(id=record_id)
            session.add(record)
        record.apply(payload)

    async def _delete(self, record_type: type[_Record], record_id: UUID) -> bool:
        async with self._transaction() as session:
            record = await session.get(record_type, record_id)
            if record is None:
                return False
            policy = DELETION_POLICIES[record_type]
            soft = policy is DeletionPolicy.SOFT
            if soft and isinstance(record, VehicleProfileRecord):
                record.apply(
                    record.data.model_copy(
                        update={"is_active": False, "last_updated": utcnow()}
                    )
                )
            else:
                await session.delete(record)
            logger.info(
                "Deleted %s %s (%s)", record_type.__tablename__, record_id, policy.value
            )
            return True

    # Extracted service data

    async def save_extracted_data(self, data: ExtractedServiceData) -> None:
        try:
            async with self._transaction() as session:
                await self._upsert(session, ExtractedServiceRecord, data.id, data)
        except Exception:
            logger.exception("Failed to save extracted data %s", data.id)
            raise

    async def get_extracted_data(self, data_id: UUID) -> ExtractedServiceData | None:
        async with self._transaction() as session:
            record = await session.get(ExtractedServiceRecord, data_id)
            return None if record is None else record.data

    async def get_all_extracted_data(self) -> list[ExtractedServiceData]:
        async with self._transaction() as session:
            stmt = select(ExtractedServiceRecord).order_by(
                ExtractedServiceRecord.timestamp.desc()
            )
            return [record.data for record in (await session.scalars(stmt)).all()]

    async def delete_extracted_data(self, data_id: UUID) -> bool:
        try:
            return await self._delete(ExtractedServiceRecord, data_id)
        except Exception:
            logger.exception("Failed to delete extracted data %s", data_id)
            raise

    # Vehicle profiles

    async def save_vehicle_profile(self, profile: VehicleProfile) -> None:
        try:
            async with self._transaction() as session:
                await self._upsert(session, VehicleProfileRecord, profile.id, profile)
        except Exception:
            logger.exception("Failed to save vehicle profile %s", profile.id)
            raise

    async def get_vehicle_profile(self, profile_id: UUID) -> VehicleProfile | None:
        async with self._transaction() as session:
            record = await session.get(VehicleProfileRecord, profile_id)
            return None if record is None else record.data

    async def get_all_vehicle_profiles(
        self, *, include_inactive: bool = False
    ) -> list[VehicleProfile]:
        async with self._transaction() as session:
            stmt = select(VehicleProfileRecord).order_by(
                VehicleProfileRecord.last_updated.desc()
            )
            if not include_inactive:
                stmt = stmt.where(VehicleProfileRecord.is_active.is_(True))
            return [record.data for record in (await session.scalars(stmt)).all()]

    async def update_vehicle_profile(
        self, profile_id: UUID, updates: dict[str, Any]
    ) -> VehicleProfile:
        async with self._transaction() as session:
            record = await session.get(VehicleProfileRecord, profile_id)
            if record is None:
                raise ProfileNotFoundError(profile_id)
            profile = VehicleProfile.model_validate(
                {**record.data.model_dump(), **updates, "last_updated": utcnow()}
            )
            record.apply(profile)
            return profile

    async def delete_vehicle_profile(self, profile_id: UUID) -> None:
        try:
            deleted = await self._delete(VehicleProfileRecord, profile_id)
        except Exception:
            logger.exception("Failed to delete vehicle profile %s", profile_id)
            raise
        if not deleted:
            raise ProfileNotFoundError(profile_id)

    # User session

    async def save_user_session(self, session_data: UserSessionData) -> None:
        try:
            async with self._transaction() as session:
                await self._upsert(
                    session, UserSessionRecord, session_data.session_id, session_data
                )
        except Exception:
            logger.exception("Failed to save user session %s", session_data.session_id)
            raise
        if self._cache is not None:
            self._cache.store(session_data)

    async def get_user_session(self) -> UserSessionData:
        """Most recently active session, or a fresh default one."""
        async with self._transaction() as session:
            stmt = (
                select(UserSessionRecord)
                .order_by(UserSessionRecord.last_active.desc())
                .limit(1)
            )
            record = (await session.scalars(stmt)).first()
            return UserSessionData() if record is None else record.data

    async def update_user_preferences(self, updates: dict[str, Any]) -> UserSessionData:
        current = await self.get_user_session()
        preferences = UserPreferences.model_validate(
            {**current.preferences.model_dump(), **updates}
        )
        updated = current.model_copy(
            update={"preferences": preferences, "last_active": utcnow()}
        )
        await self.save_user_session(updated)
        return updated

    async def update_user_location(
        self,
        zip_code: str,
        *,
        city: str | None = None,
        state: str | None = None,
        coordinates: Coordinates | None = None,
    ) -> UserSessionData:
        zip_code = zip_code.strip()
        if not _ZIP_CODE.match(zip_code):
            raise InvalidPostalCodeError(zip_code)

        current = await self.get_user_session()
        location = UserLocation(
            zip_code=zip_code, city=city, state=state, coordinates=coordinates
        )
        updated = current.model_copy(
            update={"location": location, "last_active": utcnow()}
        )
        await self.save_user_session(updated)
        return updated

    def cached_preferences(self) -> UserPreferences | None:
        return None if self._cache is None else self._cache.preferences()

    def cached_location(self) -> UserLocation | None:
        return None if self._cache is None else self._cache.location()

    # Search and analytics

    async def search_extracted_data(self, query: str) -> list[ExtractedServiceData]:
        needle = query.strip().lower()
        try:
            all_data = await self.get_all_extracted_data()
        except Exception:
            logger.exception("Search failed for %r", query)
            return []
        return [
            data
            for data in all_data
            if any(
                field and needle in field.lower() for field in _searchable_fields(data)
            )
        ]

    async def get_service_stats(self) -> ServiceStats:
        try:
            all_data = await self.get_all_extracted_data()
        except Exception:
            logger.exception("Failed to compute service stats")
            return ServiceStats()

        costs = [
            data.pricing.effective_total
            for data in all_data
            if data.pricing.effective_total > 0
        ]
        services = Counter(data.service_info.primary_service for data in all_data)
        shops = Counter(data.shop_info.name for data in all_data if data.shop_info.name)
        total_spent = sum(costs)
        return ServiceStats(
            total_services=len(all_data),
            total_spent=total_spent,
            average_service_cost=total_spent / len(costs) if costs else 0,
            top_services=[
                ServiceCount(service=name, count=count)
                for name, count in services.most_common(5)
            ],
            top_shops=[
                ShopCount(shop=name, count=count)
                for name, count in shops.most_common(5)
            ],
        )

    async def get_quick_stats(self, now: datetime | None = None) -> QuickStats:
        now = now or utcnow()
        try:
            all_data = await self.get_all_extracted_data()
            profiles = await self.get_all_vehicle_profiles()
        except Exception:
            logger.exception("Failed to compute quick stats")
            return QuickStats()

        cutoff = now - timedelta(days=30)
        return QuickStats(
            recent_services=sum(1 for data in all_data if data.timestamp > cutoff),
            total_vehicles=len(profiles),
            pending_actions=sum(
                1
                for data in all_data
                if data.service_info.urgency_level in _URGENT_LEVELS
                or data.timeline.is_urgent
            ),
        )

    # Backup and restore

    async def export_all_data(self) -> str:
        document = DataExport(
            extracted_data=await self.get_all_extracted_data(),
            vehicle_profiles=await self.get_all_vehicle_profiles(include_inactive=True),
            user_session=await self.get_user_session(),
        )
        return document.model_dump_json(by_alias=True, indent=2)

    async def import_data(self, raw: str | bytes) -> DataExport:
        """
        Upsert every record of an export document, one transaction each.

        A failure part way leaves the records imported so far in place.
        """
        document = DataExport.model_validate_json(raw)
        if document.version != EXPORT_VERSION:
            logger.warning(
                "Importing export version %s (expected %s)",
                document.version,
                EXPORT_VERSION,
            )
        for data in document.extracted_data:
            await self.save_extracted_data(data)
        for profile in document.vehicle_profiles:
            await self.save_vehicle_profile(profile)
        if document.user_session is not None:
            await self.save_user_session(document.user_session)
        logger.info(
            "Imported %d extractions and %d vehicle profiles",
            len(document.extracted_data),
            len(document.vehicle_profiles),
        )
        return document

    async def clear_all_data(self) -> None:
        try:
            async with self._transaction() as session:
                for record_type in (
                    ExtractedServiceRecord,
                    VehicleProfileRecord,
                    UserSessionRecord,
                ):
                    await session.execute(delete(record_type))
        except Exception:
            logger.exception("Failed to clear stored data")
            raise
        if self._cache is not None:
            self._cache.clear()
        logger.info("All stored data cleared")
