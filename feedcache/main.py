from typing import Optional

from fastapi import FastAPI
from contextlib import asynccontextmanager
from feedcache.api.feed_cache import router as feed_cache_router
from feedcache.config.settings import settings
from feedcache.services.feed_cache import CacheEngine


def create_app(engine: Optional[CacheEngine] = None, lifecycle_source: Optional[str] = None) -> FastAPI:
    """Diagnostics app around one cache engine (built from settings when not given)."""
    engine = engine if engine is not None else CacheEngine.from_settings(settings)
    source_name = lifecycle_source if lifecycle_source is not None else settings.FEED_LIFECYCLE_SOURCE

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup logic
        engine.attach_lifecycle(name=source_name)
        yield
        # Shutdown logic
        engine.detach_lifecycle()

    app = FastAPI(lifespan=lifespan)
    app.state.feed_cache = engine

    # include routes
    app.include_router(feed_cache_router)
    return app


app = create_app()
