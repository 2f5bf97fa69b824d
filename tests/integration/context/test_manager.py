from collections.abc import Callable
from unittest.mock import AsyncMock
from uuid import uuid4

from buckled.context.manager import SmartContextManager
from buckled.profile.models import UserSessionData
from buckled.service.models import ExtractedServiceData, UrgencyLevel
from buckled.storage.store import StorageManager

ExtractionFactory = Callable[..., ExtractedServiceData]


class TestProcessExtraction:
    async def test_creates_profile_and_session(
        self, storage: StorageManager, make_extraction: ExtractionFactory
    ) -> None:
        manager = SmartContextManager(storage)
        data = make_extraction(
            "Brake Service",
            urgency=UrgencyLevel.HIGH,
            mileage=30000,
            final_total=350,
        )

        result = await manager.process_extraction(data)

        assert result.vehicle_profile is not None
        assert result.vehicle_profile.identity.make == "Honda"
        assert result.updated_session.service_history.total_services == 1
        assert result.recommendations[0].service == "Brake Service"
        assert await storage.get_extracted_data(data.id) == data
        assert [p.id for p in await storage.get_all_vehicle_profiles()] == [
            result.vehicle_profile.id
        ]

    async def test_matching_vehicle_updates_existing_profile(
        self, storage: StorageManager, make_extraction: ExtractionFactory
    ) -> None:
        manager = SmartContextManager(storage)
        first = await manager.process_extraction(make_extraction(mileage=30000))

        second = await manager.process_extraction(
            make_extraction("Tire Rotation", make="HONDA", mileage=34000)
        )

        assert first.vehicle_profile is not None
        assert second.vehicle_profile is not None
        assert second.vehicle_profile.id == first.vehicle_profile.id
        assert len(second.vehicle_profile.service_history) == 2
        assert second.vehicle_profile.specifications.mileage == 34000
        assert len(await storage.get_all_vehicle_profiles()) == 1
        assert second.updated_session.service_history.total_services == 2

    async def test_different_vehicle_gets_new_profile(
        self, storage: StorageManager, make_extraction: ExtractionFactory
    ) -> None:
        manager = SmartContextManager(storage)
        await manager.process_extraction(make_extraction())

        await manager.process_extraction(
            make_extraction(make="Toyota", model="Camry", year=2012)
        )

        assert len(await storage.get_all_vehicle_profiles()) == 2

    async def test_without_vehicle_details(
        self, storage: StorageManager, make_extraction: ExtractionFactory
    ) -> None:
        manager = SmartContextManager(storage)
        data = make_extraction(make=None, model=None, year=None, vehicle_confidence=20)

        result = await manager.process_extraction(data)

        assert result.vehicle_profile is None
        assert await storage.get_all_vehicle_profiles() == []
        assert result.updated_session.service_history.total_services == 1

    async def test_storage_failure_is_contained(
        self, make_extraction: ExtractionFactory
    ) -> None:
        session = UserSessionData()
        storage = AsyncMock(spec=StorageManager)
        storage.save_extracted_data.side_effect = RuntimeError("disk full")
        storage.get_user_session.return_value = session

        result = await SmartContextManager(storage).process_extraction(
            make_extraction()
        )

        assert result.updated_session == session
        assert result.vehicle_profile is None
        assert result.recommendations == []


class TestSmartInsights:
    async def test_insights_for_known_vehicle(
        self, storage: StorageManager, make_extraction: ExtractionFactory
    ) -> None:
        manager = SmartContextManager(storage)
        result = await manager.process_extraction(
            make_extraction(mileage=30000, final_total=75)
        )
        assert result.vehicle_profile is not None

        insights = await manager.generate_smart_insights(result.vehicle_profile.id)

        assert insights is not None
        assert insights.vehicle_id == result.vehicle_profile.id
        assert insights.cost_trends.average_spend == 75
        assert insights.patterns.common_services == ["Oil Change"]

    async def test_unknown_vehicle(self, storage: StorageManager) -> None:
        manager = SmartContextManager(storage)

        assert await manager.generate_smart_insights(uuid4()) is None
