"""Resource-type contract: attribute schema plus a remote adapter."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..ingest.models import ResourceAddress


class AttributeKind(str, Enum):
    """Value kinds an attribute schema can require."""
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    LIST = "list"
    MAP = "map"
    ANY = "any"


class AttributeSpec(BaseModel):
    """Schema entry for one attribute of a resource type."""
    kind: AttributeKind = Field(default=AttributeKind.ANY, description="Expected value kind")
    required: bool = Field(default=False, description="Must be set in configuration")
    computed: bool = Field(default=False, description="Exported by the provider after create")
    immutable: bool = Field(default=False, description="A change forces replacement")
    description: str = Field(default="")


class ResourceAdapter(ABC):
    """
    Remote operations for one resource type.
    
    Adapters talk to the remote system only. They never touch the state
    store: the executor records whatever they return.
    """
    
    def validate(self, address: ResourceAddress, inputs: Dict[str, Any]) -> List[str]:
        """
        Type-specific checks on fully resolved inputs.
        
        Returns:
            List of problems (empty when valid)
        """
        return []
    
    @abstractmethod
    def create(self, address: ResourceAddress, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create the remote object.
        
        Args:
            address: Resource address being created
            inputs: Resolved input attributes
            
        Returns:
            Exported attributes (at least the provider-assigned identifier)
            
        Raises:
            RemoteOperationError: If the remote call fails
        """
        pass
    
    @abstractmethod
    def read(self, address: ResourceAddress, outputs: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Read current exported attributes of an existing object.
        
        Returns:
            Exported attributes, or None if the object no longer exists
        """
        pass
    
    @abstractmethod
    def update(self, address: ResourceAddress, inputs: Dict[str, Any], outputs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update mutable attributes in place.
        
        Args:
            address: Resource address being updated
            inputs: New resolved input attributes
            outputs: Exported attributes recorded by the last apply
            
        Returns:
            Exported attributes after the update
        """
        pass
    
    @abstractmethod
    def destroy(self, address: ResourceAddress, outputs: Dict[str, Any]) -> None:
        """Delete the remote object identified by the recorded exported attributes."""
        pass


class ResourceType(BaseModel):
    """A registered resource type: its name, schema and adapter."""
    name: str = Field(..., description="Type name used in configuration, e.g. aws_vpc")
    attributes: Dict[str, AttributeSpec] = Field(default_factory=dict, description="Attribute schema")
    adapter: ResourceAdapter = Field(..., description="Remote operations")
    
    class Config:
        """Pydantic config."""
        arbitrary_types_allowed = True
    
    def immutable_attributes(self) -> List[str]:
        return [name for name, spec in self.attributes.items() if spec.immutable]
    
    def computed_attributes(self) -> List[str]:
        return [name for name, spec in self.attributes.items() if spec.computed]
    
    def is_immutable(self, attribute: str) -> bool:
        spec = self.attributes.get(attribute)
        return bool(spec and spec.immutable)
