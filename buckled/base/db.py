from sqlalchemy.ext.asyncio import create_async_engine

from buckled.base.settings import load_settings

DATABASE_URI = load_settings().database_uri

engine = create_async_engine(DATABASE_URI)
