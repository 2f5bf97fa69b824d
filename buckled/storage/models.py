from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from buckled.base.models import BaseDbModel, UTCDateTime
from buckled.base.schemas import PydanticJSONB
from buckled.profile.models import UserSessionData, VehicleProfile
from buckled.service.models import ExtractedServiceData, ExtractionSource


class DeletionPolicy(enum.Enum):
    HARD = "hard"
    SOFT = "soft"


class ExtractedServiceRecord(BaseDbModel):
    __tablename__ = "extracted_services"

    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    source: Mapped[ExtractionSource] = mapped_column(Enum(ExtractionSource), index=True)
    primary_service: Mapped[str] = mapped_column(String(255), index=True)
    category: Mapped[str] = mapped_column(String(100), index=True)
    vehicle_make: Mapped[str | None] = mapped_column(String(100), index=True)
    data: Mapped[ExtractedServiceData] = mapped_column(
        PydanticJSONB(ExtractedServiceData)
    )

    def apply(self, data: ExtractedServiceData) -> None:
        self.timestamp = data.timestamp
        self.source = data.source
        self.primary_service = data.service_info.primary_service[:255]
        self.category = data.service_info.category[:100]
        self.vehicle_make = data.vehicle_info.make
        self.data = data


class VehicleProfileRecord(BaseDbModel):
    __tablename__ = "vehicle_profiles"

    make: Mapped[str | None] = mapped_column(String(100), index=True)
    model: Mapped[str | None] = mapped_column(String(100), index=True)
    year: Mapped[int | None] = mapped_column(Integer, index=True)
    vin: Mapped[str | None] = mapped_column(String(32), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    data: Mapped[VehicleProfile] = mapped_column(PydanticJSONB(VehicleProfile))

    def apply(self, profile: VehicleProfile) -> None:
        self.make = profile.identity.make
        self.model = profile.identity.model
        self.year = profile.identity.year
        self.vin = profile.identity.vin
        self.is_active = profile.is_active
        self.last_updated = profile.last_updated
        self.data = profile


class UserSessionRecord(BaseDbModel):
    __tablename__ = "user_sessions"

    last_active: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    data: Mapped[UserSessionData] = mapped_column(PydanticJSONB(UserSessionData))

    def apply(self, session: UserSessionData) -> None:
        self.last_active = session.last_active
        self.data = session


# Extractions go away for good; profiles are only deactivated so their
# service history stays auditable.
DELETION_POLICIES: dict[type[BaseDbModel], DeletionPolicy] = {
    ExtractedServiceRecord: DeletionPolicy.HARD,
    VehicleProfileRecord: DeletionPolicy.SOFT,
}
