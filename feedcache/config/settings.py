from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv, find_dotenv
from typing import Optional

_env_path = find_dotenv()  # locate a .env file in this folder or parent folders
if _env_path:
    load_dotenv(_env_path)


class Settings(BaseSettings):
    # Freshness
    FEED_TTL_SECONDS: float = Field(default=60.0, gt=0)
    # When unset, a foreground after TTL seconds marks every bucket stale.
    FEED_FOREGROUND_STALE_SECONDS: Optional[float] = Field(default=None, gt=0)

    # Capacity (LRU by last load)
    FEED_MAX_BUCKETS: int = Field(default=12, ge=1)

    # Host lifecycle wiring: none | app_state | signal
    FEED_LIFECYCLE_SOURCE: str = "none"

    LOG_LEVEL: str = "INFO"

settings = Settings()
