from typing import Any

from buckled.extraction.schemas import (
    DOCUMENT_DEFAULTS,
    TEXT_DEFAULTS,
    decode_extraction,
)
from buckled.service.models import (
    ExtractedServiceData,
    ExtractionSource,
    LineItemCategory,
    RawData,
    Severity,
    UrgencyLevel,
)


def _decode_document(payload: dict[str, Any]) -> ExtractedServiceData:
    return decode_extraction(
        payload,
        source=ExtractionSource.DOCUMENT_UPLOAD,
        defaults=DOCUMENT_DEFAULTS,
        fallback_service="General Service",
        raw_data=RawData(),
    )


class TestDecodeExtraction:
    def test_empty_payload_uses_text_defaults(self) -> None:
        data = decode_extraction(
            {},
            source=ExtractionSource.TEXT_INPUT,
            defaults=TEXT_DEFAULTS,
            fallback_service="Squeaky Brakes",
            raw_data=RawData(original_text="squeaky brakes"),
        )

        assert data.source is ExtractionSource.TEXT_INPUT
        assert data.service_info.primary_service == "Squeaky Brakes"
        assert data.service_info.urgency_level is UrgencyLevel.MEDIUM
        assert data.service_info.recommended_action == "Get professional diagnosis"
        assert data.service_info.confidence.value == 60
        assert data.vehicle_info.confidence.value == 20
        assert data.pricing.confidence.value == 0
        assert data.shop_info.confidence.value == 0
        assert data.user_context is not None
        assert data.user_context.confidence.value == 70

    def test_document_mode_has_no_user_context(self) -> None:
        data = _decode_document({"serviceInfo": {"primaryService": "Oil Change"}})

        assert data.user_context is None
        assert data.pricing.confidence.value == 30
        assert data.shop_info.confidence.value == 40
        assert data.service_info.recommended_action == (
            "Review the extracted information"
        )

    def test_invalid_fields_fall_back_to_defaults(self) -> None:
        data = _decode_document(
            {
                "serviceInfo": {
                    "primaryService": "Brake Service",
                    "urgencyLevel": "URGENT!!",
                    "secondaryServices": "rotors",
                    "confidence": "high",
                },
                "vehicleInfo": {"year": "unknown", "mileage": "45,000", "make": ""},
                "technicalInfo": {"severity": "Critical"},
            }
        )

        assert data.service_info.urgency_level is UrgencyLevel.MEDIUM
        assert data.service_info.secondary_services == []
        assert data.service_info.confidence.value == 50
        assert data.vehicle_info.year is None
        assert data.vehicle_info.mileage == 45000
        assert data.vehicle_info.make is None
        assert data.technical_info.severity is Severity.CRITICAL

    def test_wrongly_shaped_block_is_ignored(self) -> None:
        data = _decode_document({"vehicleInfo": "Honda Civic", "pricing": []})

        assert data.vehicle_info.make is None
        assert data.vehicle_info.confidence.value == 40
        assert data.pricing.final_total is None

    def test_currency_strings_are_parsed(self) -> None:
        data = _decode_document(
            {
                "pricing": {
                    "finalTotal": "$1,234.50",
                    "breakdown": [
                        {"item": "Brake pads", "total": "89.99", "category": "PARTS"},
                        {"total": 5},
                    ],
                    "confidence": 88,
                }
            }
        )

        assert data.pricing.final_total == 1234.5
        assert data.pricing.confidence.value == 88
        assert len(data.pricing.breakdown) == 1
        assert data.pricing.breakdown[0].total == 89.99
        assert data.pricing.breakdown[0].category is LineItemCategory.PARTS

    def test_naive_dates_become_utc(self) -> None:
        data = _decode_document({"timeline": {"dueDate": "2026-03-01T09:00:00"}})

        assert data.timeline.due_date is not None
        assert data.timeline.due_date.tzinfo is not None

    def test_confidence_is_clamped(self) -> None:
        data = _decode_document({"serviceInfo": {"confidence": 150}})

        assert data.service_info.confidence.value == 100

    def test_extracted_text_moves_to_raw_data(self) -> None:
        data = _decode_document({"extractedText": "INVOICE #42"})

        assert data.raw_data.extracted_text == "INVOICE #42"
