from fastapi import APIRouter, Depends, HTTPException, Request, status

from feedcache.schemas.debug import CacheActionResponse, CacheDebugOut
from feedcache.services.feed_cache import CacheEngine
from feedcache.utils.log import app_logger

router = APIRouter(prefix="/feed-cache", tags=["Feed_Cache"])


def get_engine(request: Request) -> CacheEngine:
    """
    returns the cache engine the host app registered on `app.state.feed_cache`.
    """
    return request.app.state.feed_cache


@router.get(
    "/debug",
    response_model=CacheDebugOut,
    summary="Dump cache state",
    description="Bucket keys, loaded page numbers, merged lengths, staleness and age.",
)
def debug_snapshot(engine: CacheEngine = Depends(get_engine)) -> CacheDebugOut:
    return CacheDebugOut(**engine.debug_snapshot())


@router.post(
    "/stale",
    response_model=CacheActionResponse,
    summary="Mark every bucket stale",
)
def mark_all_stale(engine: CacheEngine = Depends(get_engine)) -> CacheActionResponse:
    count = engine.bucket_count
    engine.mark_all_stale()
    app_logger.info("api.feed_cache.mark_all_stale", buckets=count)
    return CacheActionResponse(status="stale", message=f"{count} buckets marked stale")


@router.post(
    "/buckets/{key}/stale",
    response_model=CacheActionResponse,
    summary="Mark one bucket stale",
    responses={404: {"description": "No bucket cached for this key"}},
)
def mark_stale(key: str, engine: CacheEngine = Depends(get_engine)) -> CacheActionResponse:
    if key not in engine:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"no bucket for key: {key}")
    engine.mark_stale(key)
    app_logger.info("api.feed_cache.mark_stale", key=key)
    return CacheActionResponse(status="stale", message=f"bucket {key} marked stale")


@router.delete(
    "/buckets/{key}",
    response_model=CacheActionResponse,
    summary="Drop one bucket",
    responses={404: {"description": "No bucket cached for this key"}},
)
def remove_bucket(key: str, engine: CacheEngine = Depends(get_engine)) -> CacheActionResponse:
    if key not in engine:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"no bucket for key: {key}")
    engine.remove_bucket(key)
    app_logger.info("api.feed_cache.remove_bucket", key=key)
    return CacheActionResponse(status="removed", message=f"bucket {key} removed")
