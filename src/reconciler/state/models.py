"""Pydantic models for persisted resource state."""

from enum import Enum
from typing import List, Dict, Any
from pydantic import BaseModel, Field


class ResourceStatus(str, Enum):
    """Lifecycle status of a resource within a run."""
    PLANNED = "planned"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"
    DESTROYED = "destroyed"


class ResourceState(BaseModel):
    """Last-applied record for one resource address."""
    address: str = Field(..., description="Resource address (type.name)")
    type: str = Field(..., description="Resource type")
    inputs: Dict[str, Any] = Field(default_factory=dict, description="Resolved input attributes last applied")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Attributes exported by the provider")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this resource depended on when applied")
    status: ResourceStatus = Field(default=ResourceStatus.APPLIED)
    
    @property
    def attributes(self) -> Dict[str, Any]:
        """Exported attributes overlaid with inputs; what references resolve against."""
        merged = dict(self.outputs)
        merged.update(self.inputs)
        return merged


class StateDocument(BaseModel):
    """On-disk layout of the state file."""
    version: int = Field(default=1)
    serial: int = Field(default=0, ge=0, description="Incremented on every write")
    lineage: str = Field(..., description="Identifier assigned when the state file is first created")
    resources: Dict[str, ResourceState] = Field(default_factory=dict)
