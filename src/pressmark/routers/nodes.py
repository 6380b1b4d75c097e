"""Routes for processing and looking up content records."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException
from pydantic import ValidationError

from pressmark.dependencies import NodeProcessorDep, NodeStoreDep, PendingReferencesDep
from pressmark.models.content import parse_record

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.post("/process")
async def process_node(
    processor: NodeProcessorDep,
    references: PendingReferencesDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, Any]:
    """
    Process one content record.

    The body is the record as returned by WPGraphQL. The response is the
    record with inline images replaced and site links made relative.
    """
    try:
        node = parse_record(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e

    processed = await processor.process_node(node, references)
    return processed.to_data()


@router.get("")
async def node_stats(store: NodeStoreDep) -> dict[str, int]:
    """Return the number of stored records."""
    return {"count": await store.count()}


@router.get("/{node_id}")
async def get_node(node_id: str, store: NodeStoreDep) -> dict[str, Any]:
    """Get a stored record (media item or downloaded file) by id."""
    node = await store.get_by_id(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node.to_data()
