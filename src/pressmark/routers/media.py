"""Routes for media items referenced by processed records."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from pressmark.dependencies import PendingReferencesDep, WordPressDep
from pressmark.exceptions import MediaFetchError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["media"])


class PendingReferencesResponse(BaseModel):
    """Response body for the pending reference listing."""

    count: int
    ids: list[str]


class PrefetchResponse(BaseModel):
    """Response body for a media item prefetch."""

    requested: int
    fetched: int


@router.get("/pending", response_model=PendingReferencesResponse)
async def list_pending(references: PendingReferencesDep) -> PendingReferencesResponse:
    """List media item ids referenced by processed records and not fetched yet."""
    ids = sorted(references.snapshot())
    return PendingReferencesResponse(count=len(ids), ids=ids)


@router.post("/pending/prefetch", response_model=PrefetchResponse)
async def prefetch_pending(references: PendingReferencesDep, wordpress: WordPressDep) -> PrefetchResponse:
    """Fetch every pending media item in batches and clear the pending set."""
    ids = sorted(references.drain())
    if not ids:
        return PrefetchResponse(requested=0, fetched=0)

    try:
        media_items = await wordpress.fetch_media_items(ids=ids)
    except MediaFetchError as e:
        # Put the ids back so a later prefetch can retry them
        references.update(ids)
        logger.warning("Prefetching %d media items failed: %s", len(ids), e.message)
        raise HTTPException(status_code=502, detail=e.message) from e

    logger.info("Prefetched %d of %d referenced media items", len(media_items), len(ids))
    return PrefetchResponse(requested=len(ids), fetched=len(media_items))
