from functools import lru_cache

from fastapi import Depends

from buckled.base.db import engine
from buckled.base.settings import load_settings
from buckled.context.manager import SmartContextManager
from buckled.extraction import ExtractionEngine, create_extraction_client
from buckled.storage.cache import SessionCache
from buckled.storage.store import StorageManager

storage = StorageManager(engine, SessionCache(load_settings().cache_path))


def get_storage() -> StorageManager:
    return storage


@lru_cache
def get_extraction_client() -> ExtractionEngine:
    return create_extraction_client()


def get_context_manager(
    storage: StorageManager = Depends(get_storage),
) -> SmartContextManager:
    return SmartContextManager(storage)
