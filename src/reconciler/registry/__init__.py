"""Resource-type registry: schemas and adapters the core dispatches to."""

from .base import AttributeKind, AttributeSpec, ResourceAdapter, ResourceType
from .registry import ResourceTypeRegistry
from .schema import validate_configuration, check_attributes

__all__ = [
    "AttributeKind",
    "AttributeSpec",
    "ResourceAdapter",
    "ResourceType",
    "ResourceTypeRegistry",
    "validate_configuration",
    "check_attributes",
]
