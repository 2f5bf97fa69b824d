from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from buckled.base.models import utcnow
from buckled.context.insights import build_insights
from buckled.context.matching import UPDATE_THRESHOLD, find_best_match
from buckled.context.models import ProcessingResult, SmartInsights
from buckled.context.profiles import create_profile, refresh_session, update_profile
from buckled.context.recommendations import generate_recommendations
from buckled.profile.models import UserSessionData, VehicleProfile
from buckled.service.models import ExtractedServiceData
from buckled.storage.store import StorageManager

logger = logging.getLogger(__name__)


class SmartContextManager:
    """Turns saved extractions into vehicle profiles, session data and advice."""

    def __init__(self, storage: StorageManager) -> None:
        self._storage = storage

    async def process_extraction(self, data: ExtractedServiceData) -> ProcessingResult:
        """
        Save an extraction and derive everything that follows from it.

        Never raises: on failure the current session comes back with no
        recommendations.
        """
        try:
            await self._storage.save_extracted_data(data)

            profile = None
            if data.has_vehicle_info:
                profile = await self.find_or_create_vehicle_profile(data)

            history = await self._storage.get_all_extracted_data()
            session = await self.update_user_session(data, history)
            return ProcessingResult(
                vehicle_profile=profile,
                updated_session=session,
                recommendations=generate_recommendations(data, profile, history),
            )
        except Exception:
            logger.exception("Processing failed for extraction %s", data.id)
            return ProcessingResult(updated_session=await self._current_session())

    async def find_or_create_vehicle_profile(
        self, data: ExtractedServiceData
    ) -> VehicleProfile:
        profiles = await self._storage.get_all_vehicle_profiles()
        best, score = find_best_match(data.vehicle_info, profiles)

        if best is not None and score > UPDATE_THRESHOLD:
            profile = update_profile(best, data)
            logger.info("Updated vehicle profile %s (score %.2f)", profile.id, score)
        else:
            profile = create_profile(data)
            logger.info("Created vehicle profile %s", profile.id)

        await self._storage.save_vehicle_profile(profile)
        return profile

    async def update_user_session(
        self,
        data: ExtractedServiceData,
        history: list[ExtractedServiceData] | None = None,
    ) -> UserSessionData:
        if history is None:
            history = await self._storage.get_all_extracted_data()
        current = await self._storage.get_user_session()
        session = refresh_session(current, data, history)
        await self._storage.save_user_session(session)
        return session

    async def generate_smart_insights(
        self, vehicle_id: UUID, now: datetime | None = None
    ) -> SmartInsights | None:
        try:
            profile = await self._storage.get_vehicle_profile(vehicle_id)
            if profile is None:
                return None
            all_data = await self._storage.get_all_extracted_data()
            return build_insights(profile, all_data, now or utcnow())
        except Exception:
            logger.exception("Failed to generate insights for vehicle %s", vehicle_id)
            return None

    async def _current_session(self) -> UserSessionData:
        try:
            return await self._storage.get_user_session()
        except Exception:
            logger.exception("Could not load the user session")
            return UserSessionData()
