from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from buckled.profile.models import UserLocation, UserPreferences, UserSessionData

logger = logging.getLogger(__name__)

_PREFERENCES_KEY = "buckled_user_preferences"
_LOCATION_KEY = "buckled_user_location"


class SessionCache:
    """
    Small JSON file mirroring the session's preferences and location.

    Reads are synchronous so callers can show preferences without a database
    round trip. The database stays the source of truth.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            content = json.loads(self._path.read_text())
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable session cache at %s", self._path)
            return {}
        return content if isinstance(content, dict) else {}

    def store(self, session: UserSessionData) -> None:
        content = self._load()
        content[_PREFERENCES_KEY] = session.preferences.model_dump(
            mode="json", by_alias=True
        )
        content[_LOCATION_KEY] = session.location.model_dump(mode="json", by_alias=True)
        self._path.write_text(json.dumps(content))

    def preferences(self) -> UserPreferences | None:
        raw = self._load().get(_PREFERENCES_KEY)
        return None if raw is None else UserPreferences.model_validate(raw)

    def location(self) -> UserLocation | None:
        raw = self._load().get(_LOCATION_KEY)
        return None if raw is None else UserLocation.model_validate(raw)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
