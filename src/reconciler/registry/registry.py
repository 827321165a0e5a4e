"""Registry of resource types the core can dispatch to."""

from typing import Dict, List, Optional
from ..utils.errors import UnknownResourceType
from ..utils.logging import get_logger
from .base import ResourceType

logger = get_logger("registry")


class ResourceTypeRegistry:
    """Maps type names to ResourceType registrations."""
    
    def __init__(self):
        self._types: Dict[str, ResourceType] = {}
    
    def register(self, resource_type: ResourceType) -> None:
        """Register a type; re-registering a name replaces the earlier entry."""
        if resource_type.name in self._types:
            logger.warning(f"Resource type '{resource_type.name}' re-registered")
        self._types[resource_type.name] = resource_type
        logger.debug(f"Registered resource type '{resource_type.name}'")
    
    def get(self, name: str) -> Optional[ResourceType]:
        return self._types.get(name)
    
    def require(self, name: str, address: str) -> ResourceType:
        """Get a type or raise UnknownResourceType naming the resource that needs it."""
        resource_type = self._types.get(name)
        if resource_type is None:
            raise UnknownResourceType(address, name)
        return resource_type
    
    def names(self) -> List[str]:
        return sorted(self._types)
    
    def __contains__(self, name: str) -> bool:
        return name in self._types
    
    def __len__(self) -> int:
        return len(self._types)
