"""Persistent store for records created while sourcing."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pressmark.models.content import ContentNode, parse_record
from pressmark.models.db import StoredNode, get_session_factory


def _to_record(stored: StoredNode) -> ContentNode:
    # Records built locally may not carry __typename in their data
    return parse_record({"__typename": stored.typename, **stored.data})


class NodeStore:
    """Service for creating and looking up stored records by id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def create_node(self, node: ContentNode) -> ContentNode:
        """
        Store a record, replacing any previous record with the same id.

        Args:
            node: The record to store

        Returns:
            The stored record
        """
        data = node.to_data()
        parent_id = getattr(node, "parent_id", None)

        async with self.session_factory() as session:
            stored = await session.get(StoredNode, node.id)
            if stored is None:
                session.add(StoredNode(id=node.id, typename=node.typename, parent_id=parent_id, data=data))
            else:
                stored.typename = node.typename
                stored.parent_id = parent_id
                stored.data = data
            await session.commit()

        return node

    async def get_by_id(self, node_id: str) -> ContentNode | None:
        """Return the record stored under ``node_id``, or None."""
        async with self.session_factory() as session:
            stored = await session.get(StoredNode, node_id)
            if stored is None:
                return None
            return _to_record(stored)

    async def get_children(self, parent_id: str) -> list[ContentNode]:
        """Return records created on behalf of ``parent_id`` (e.g. downloaded files)."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(StoredNode).where(StoredNode.parent_id == parent_id).order_by(StoredNode.id)
            )
            return [_to_record(stored) for stored in result.scalars().all()]

    async def count(self) -> int:
        """Return the number of stored records."""
        async with self.session_factory() as session:
            result = await session.execute(select(func.count(StoredNode.id)))
            return result.scalar() or 0


# Global store instance
_node_store: NodeStore | None = None


async def get_node_store() -> NodeStore:
    """Get the global node store, initializing the database if needed."""
    global _node_store
    if _node_store is None:
        _node_store = NodeStore(await get_session_factory())
    return _node_store


def reset_node_store() -> None:
    """Reset the global node store. Useful for testing or after closing the database."""
    global _node_store
    _node_store = None
