from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Any

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from buckled.base.models import utcnow
from buckled.extraction.interface import (
    DocumentUpload,
    ExtractionEngine,
    validate_upload,
)
from buckled.extraction.normalizer import NormalizedService, normalize_service
from buckled.extraction.parsing import (
    clean_user_input,
    extract_service_keyword,
    parse_json_payload,
)
from buckled.extraction.prompts import (
    CONNECTION_PROMPT,
    DOCUMENT_PROMPT,
    build_context_block,
    build_text_prompt,
)
from buckled.extraction.rate_limit import RateLimiter
from buckled.extraction.schemas import (
    DOCUMENT_DEFAULTS,
    TEXT_DEFAULTS,
    decode_extraction,
)
from buckled.profile.models import UserSessionData
from buckled.service.models import (
    ConfidenceScore,
    ConfidenceSource,
    ExtractedServiceData,
    ExtractionSource,
    Pricing,
    RawData,
    ServiceInfo,
    ShopInfo,
    TechnicalInfo,
    Timeline,
    UploadMetadata,
    UrgencyLevel,
    UserContext,
    VehicleInfo,
)

logger = logging.getLogger(__name__)

_RATE_LIMIT_STATUS = 429


def _is_rate_limited(exc: BaseException) -> bool:
    """Recognize a 429 from openai, google or plain httpx errors."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == _RATE_LIMIT_STATUS
    for status in (
        getattr(exc, "status_code", None),
        getattr(exc, "code", None),
        getattr(getattr(exc, "response", None), "status_code", None),
    ):
        if status == _RATE_LIMIT_STATUS:
            return True
    return False


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


def _failed_blocks() -> dict[str, Any]:
    return {
        "vehicle_info": VehicleInfo(confidence=ConfidenceScore.failed()),
        "pricing": Pricing(confidence=ConfidenceScore.failed()),
        "shop_info": ShopInfo(confidence=ConfidenceScore.failed()),
        "technical_info": TechnicalInfo(confidence=ConfidenceScore.failed()),
        "timeline": Timeline(confidence=ConfidenceScore.failed()),
    }


def _degraded_document(
    metadata: UploadMetadata, error: BaseException, duration: float
) -> ExtractedServiceData:
    return ExtractedServiceData(
        source=ExtractionSource.DOCUMENT_UPLOAD,
        service_info=ServiceInfo(
            primary_service="Document Analysis Failed",
            category="Error",
            urgency_level=UrgencyLevel.MEDIUM,
            recommended_action=(
                "Please try uploading the document again "
                "or enter service information manually."
            ),
            confidence=ConfidenceScore.failed(),
        ),
        **_failed_blocks(),
        raw_data=RawData(
            image_metadata=metadata,
            ai_response=f"Error: {error}",
            processing_seconds=duration,
        ),
    )


def _degraded_text(
    text: str, local: NormalizedService, error: BaseException, duration: float
) -> ExtractedServiceData:
    return ExtractedServiceData(
        source=ExtractionSource.TEXT_INPUT,
        service_info=ServiceInfo(
            primary_service=local.standardized,
            category="General",
            urgency_level=UrgencyLevel.MEDIUM,
            recommended_action="Get professional consultation",
            confidence=ConfidenceScore(
                value=local.confidence, source=ConfidenceSource.PATTERN_MATCH
            ),
        ),
        **_failed_blocks(),
        user_context=UserContext(
            symptoms=[text],
            confidence=ConfidenceScore(value=50, source=ConfidenceSource.USER_INPUT),
        ),
        raw_data=RawData(
            original_text=text,
            ai_response=f"Error: {error}",
            processing_seconds=duration,
        ),
    )


class LangChainExtractionClient(ExtractionEngine):
    """
    Extracts service records through two chat models, one vision capable.

    Collaborator failures never escape: they are logged and turned into a
    degraded record so callers always have something to show.
    """

    def __init__(
        self,
        text_llm: BaseChatModel,
        vision_llm: BaseChatModel,
        *,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 60.0,
        rate_limit_backoff: float = 5.0,
    ) -> None:
        self._text_llm = text_llm
        self._vision_llm = vision_llm
        self._rate_limiter = rate_limiter or RateLimiter()
        self._timeout = timeout
        self._rate_limit_backoff = rate_limit_backoff

    async def extract_from_text(
        self, text: str, user_context: UserSessionData | None = None
    ) -> ExtractedServiceData:
        start = time.monotonic()
        local = normalize_service(text)
        logger.info(
            "Local correction: %r -> %r (%s)",
            text,
            local.standardized,
            local.confidence,
        )

        try:
            prompt = build_text_prompt(
                text, local.corrected, local.standardized, user_context
            )
            response = await self._invoke(
                self._text_llm, [HumanMessage(content=prompt)]
            )
            if not response.strip():
                raise ValueError("No response from text model")

            try:
                payload = parse_json_payload(response)
            except ValueError:
                logger.warning("Text model answer is not JSON, using input fallback")
                payload = {
                    "serviceInfo": {
                        "primaryService": clean_user_input(text),
                        "confidence": 40,
                    },
                    "userContext": {"symptoms": [text], "confidence": 60},
                }

            return decode_extraction(
                payload,
                source=ExtractionSource.TEXT_INPUT,
                defaults=TEXT_DEFAULTS,
                fallback_service=clean_user_input(text) or local.standardized,
                raw_data=RawData(
                    original_text=text,
                    extracted_text=response,
                    ai_response=response,
                    processing_seconds=time.monotonic() - start,
                ),
            )
        except Exception as exc:
            logger.exception("Text extraction failed, using local correction")
            return _degraded_text(text, local, exc, time.monotonic() - start)

    async def extract_from_document(
        self, upload: DocumentUpload, user_context: UserSessionData | None = None
    ) -> ExtractedServiceData:
        """
        Analyze an uploaded image or PDF.

        Raises UnsupportedFileTypeError before any network call when the MIME
        type is not accepted.
        """
        validate_upload(upload)
        start = time.monotonic()
        metadata = UploadMetadata(
            file_name=upload.file_name,
            file_size=upload.size,
            mime_type=upload.mime_type,
            upload_time=utcnow(),
        )

        try:
            data_uri = f"data:{upload.mime_type};base64,"
            data_uri += base64.b64encode(upload.content).decode("ascii")
            message = HumanMessage(
                content=[
                    {
                        "type": "text",
                        "text": DOCUMENT_PROMPT + build_context_block(user_context),
                    },
                    {
                        "type": "image_url",
                        "image_url": {"url": data_uri},
                    },
                ]
            )
            response = await self._invoke(self._vision_llm, [message])
            if not response.strip():
                raise ValueError("No response from vision model")

            try:
                payload = parse_json_payload(response)
            except ValueError:
                logger.warning("Vision model answer is not JSON, scanning for keywords")
                payload = {
                    "serviceInfo": {
                        "primaryService": extract_service_keyword(response),
                        "confidence": 30,
                    },
                    "extractedText": response,
                }

            return decode_extraction(
                payload,
                source=ExtractionSource.DOCUMENT_UPLOAD,
                defaults=DOCUMENT_DEFAULTS,
                fallback_service="General Service",
                raw_data=RawData(
                    image_metadata=metadata,
                    ai_response=response,
                    processing_seconds=time.monotonic() - start,
                ),
            )
        except Exception as exc:
            logger.exception("Document analysis failed for %s", upload.file_name)
            return _degraded_document(metadata, exc, time.monotonic() - start)

    async def test_connection(self) -> bool:
        try:
            response = await self._invoke(
                self._text_llm, [HumanMessage(content=CONNECTION_PROMPT)]
            )
        except Exception:
            logger.exception("Connection test failed")
            return False
        return bool(response.strip())

    async def _invoke(self, llm: BaseChatModel, messages: list[BaseMessage]) -> str:
        """Call the model once, retrying a single time after a 429."""
        await self._rate_limiter.acquire()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self._rate_limit_backoff),
            retry=retry_if_exception(_is_rate_limited),
            sleep=self._rate_limiter.backoff,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._call, llm, messages)

    async def _call(self, llm: BaseChatModel, messages: list[BaseMessage]) -> str:
        async with asyncio.timeout(self._timeout):
            response = await llm.ainvoke(messages)
        return _message_text(response)
