"""Pydantic models for declared resources."""

import re
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field
from ..utils.errors import ConfigurationLoadError

NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


class ResourceAddress(BaseModel):
    """Unique, immutable identifier of a resource: (type, local name)."""
    type: str = Field(..., description="Resource type, e.g. aws_vpc")
    name: str = Field(..., description="Local name, unique within the type")
    
    class Config:
        """Pydantic config."""
        frozen = True
    
    @classmethod
    def parse(cls, text: str) -> "ResourceAddress":
        """Parse 'type.name' into an address."""
        parts = text.strip().split(".")
        if len(parts) != 2 or not all(NAME_PATTERN.match(p) for p in parts):
            raise ConfigurationLoadError(f"Invalid resource address '{text}', expected 'type.name'")
        return cls(type=parts[0], name=parts[1])
    
    def __str__(self) -> str:
        return f"{self.type}.{self.name}"


class Lifecycle(BaseModel):
    """Per-resource lifecycle meta-arguments."""
    prevent_destroy: bool = Field(default=False, description="Refuse plans that destroy or replace this resource")
    ignore_changes: List[str] = Field(default_factory=list, description="Attributes excluded from diffing")
    
    class Config:
        """Pydantic config."""
        extra = "forbid"
        frozen = True


class ResourceDefinition(BaseModel):
    """A declared resource: type, name, attribute expressions and meta-arguments."""
    type: str = Field(..., description="Resource type")
    name: str = Field(..., description="Local name")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute name -> expression")
    depends_on: List[ResourceAddress] = Field(default_factory=list, description="Explicit dependencies")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    source: Optional[str] = Field(None, description="File the definition was read from")
    
    class Config:
        """Pydantic config."""
        frozen = True
    
    @property
    def address(self) -> ResourceAddress:
        return ResourceAddress(type=self.type, name=self.name)
    
    def references(self) -> List["Reference"]:
        """References to other resources' attributes found in the expressions."""
        from .expressions import find_references
        return find_references(self.attributes)


class Configuration(BaseModel):
    """A full configuration version: definitions in declaration order plus resolved variables."""
    definitions: List[ResourceDefinition] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    
    def get(self, address: str) -> Optional[ResourceDefinition]:
        """Get definition by 'type.name' address."""
        for definition in self.definitions:
            if str(definition.address) == address:
                return definition
        return None
    
    def by_address(self) -> Dict[str, ResourceDefinition]:
        """Definitions keyed by address, in declaration order."""
        return {str(d.address): d for d in self.definitions}
    
    @property
    def addresses(self) -> List[str]:
        return [str(d.address) for d in self.definitions]
