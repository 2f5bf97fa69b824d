from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID


class BuckledError(Exception):
    """Base class for errors surfaced to callers as user-facing messages."""


class UnsupportedFileTypeError(BuckledError):
    def __init__(self, mime_type: str, supported: Iterable[str]) -> None:
        self.mime_type = mime_type
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported file type '{mime_type}'. "
            f"Please upload one of: {', '.join(self.supported)}"
        )


class InvalidPostalCodeError(BuckledError):
    def __init__(self, zip_code: str) -> None:
        self.zip_code = zip_code
        super().__init__(
            f"Invalid ZIP code '{zip_code}' (expected 12345 or 12345-6789)"
        )


class ProfileNotFoundError(BuckledError, LookupError):
    def __init__(self, profile_id: UUID) -> None:
        self.profile_id = profile_id
        super().__init__(f"Vehicle profile {profile_id} not found")
