"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends

from pressmark.config import Settings, get_settings
from pressmark.services.node_store import NodeStore, get_node_store
from pressmark.services.processor import NodeProcessor, get_node_processor
from pressmark.services.references import PendingReferenceSet, get_pending_references
from pressmark.services.wordpress import WordPressService, get_wordpress_service

SettingsDep = Annotated[Settings, Depends(get_settings)]
NodeStoreDep = Annotated[NodeStore, Depends(get_node_store)]
NodeProcessorDep = Annotated[NodeProcessor, Depends(get_node_processor)]
PendingReferencesDep = Annotated[PendingReferenceSet, Depends(get_pending_references)]
WordPressDep = Annotated[WordPressService, Depends(get_wordpress_service)]
