from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from buckled.base.errors import UnsupportedFileTypeError
from buckled.profile.models import UserSessionData
from buckled.service.models import ExtractedServiceData

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "application/pdf")


@dataclass(frozen=True)
class DocumentUpload:
    file_name: str
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def validate_upload(upload: DocumentUpload) -> None:
    if upload.mime_type not in ALLOWED_MIME_TYPES:
        raise UnsupportedFileTypeError(upload.mime_type, ALLOWED_MIME_TYPES)


class ExtractionEngine(ABC):
    @abstractmethod
    async def extract_from_text(
        self, text: str, user_context: UserSessionData | None = None
    ) -> ExtractedServiceData: ...

    @abstractmethod
    async def extract_from_document(
        self, upload: DocumentUpload, user_context: UserSessionData | None = None
    ) -> ExtractedServiceData: ...

    @abstractmethod
    async def test_connection(self) -> bool: ...
