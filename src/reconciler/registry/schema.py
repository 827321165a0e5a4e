"""Validate definitions and resolved inputs against registered schemas."""

from typing import Any, Dict, List
from ..ingest.expressions import UNKNOWN, contains_unknown, is_expression
from ..ingest.models import Configuration, ResourceAddress
from ..utils.errors import ReconcilerError, SchemaValidationError
from ..utils.logging import get_logger
from .base import AttributeKind, AttributeSpec, ResourceType
from .registry import ResourceTypeRegistry

logger = get_logger("registry.schema")


def validate_configuration(configuration: Configuration, registry: ResourceTypeRegistry) -> None:
    """
    Check every definition against its type schema before anything is planned.
    
    Checks: type is registered, required attributes are set, no unknown or
    computed-only attributes are set, literal values have the right kind,
    references point at attributes the target type declares. Definitions
    made only of literals are also checked by their adapter.
    
    Raises:
        UnknownResourceType: If a definition's type is not registered
        SchemaValidationError: On the first definition with problems
    """
    definitions = configuration.by_address()
    
    for address, definition in definitions.items():
        resource_type = registry.require(definition.type, address)
        problems = check_attributes(resource_type, definition.attributes, allow_expressions=True)
        
        for reference in definition.references():
            target = definitions.get(str(reference.address))
            if target is None:
                continue
            target_type = registry.get(target.type)
            if target_type is not None and reference.attribute not in target_type.attributes:
                problems.append(
                    f"reference '{reference}' names attribute '{reference.attribute}' "
                    f"not declared by {target.type}"
                )
        
        for ignored in definition.lifecycle.ignore_changes:
            if ignored not in resource_type.attributes:
                problems.append(f"lifecycle.ignore_changes names unknown attribute '{ignored}'")
        
        if not problems and not definition.references():
            problems.extend(adapter_problems(resource_type, definition.address, definition.attributes))
        
        if problems:
            raise SchemaValidationError(address, problems)
    
    logger.info(f"Validated {len(definitions)} definitions against registered schemas")


def check_attributes(resource_type: ResourceType, attributes: Dict[str, Any], allow_expressions: bool = False) -> List[str]:
    """
    Return schema problems for a set of attribute values.
    
    Args:
        resource_type: Registered type to check against
        attributes: Attribute values (literal, or expressions when allow_expressions)
        allow_expressions: Skip kind checks for values that still carry references
    """
    problems = []
    
    for name, spec in resource_type.attributes.items():
        if spec.required and not spec.computed and name not in attributes:
            problems.append(f"missing required attribute '{name}'")
    
    for name, value in attributes.items():
        spec = resource_type.attributes.get(name)
        if spec is None:
            problems.append(f"unknown attribute '{name}'")
            continue
        if spec.computed and not spec.required:
            problems.append(f"attribute '{name}' is computed and cannot be set")
            continue
        if allow_expressions and (is_expression(value) or _has_expression(value)):
            continue
        if value is UNKNOWN or contains_unknown(value):
            continue
        if not matches_kind(spec, value):
            problems.append(f"attribute '{name}' must be of kind {spec.kind.value}, got {type(value).__name__}")
    
    return problems


def matches_kind(spec: AttributeSpec, value: Any) -> bool:
    """True if a concrete value fits the attribute's declared kind. None is accepted for optional attributes."""
    if value is None:
        return not spec.required
    kind = spec.kind
    if kind == AttributeKind.ANY:
        return True
    if kind == AttributeKind.STRING:
        return isinstance(value, str)
    if kind == AttributeKind.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == AttributeKind.BOOL:
        return isinstance(value, bool)
    if kind == AttributeKind.LIST:
        return isinstance(value, list)
    if kind == AttributeKind.MAP:
        return isinstance(value, dict)
    return False


def _has_expression(value: Any) -> bool:
    if isinstance(value, dict):
        return any(is_expression(v) or _has_expression(v) for v in value.values())
    if isinstance(value, list):
        return any(is_expression(v) or _has_expression(v) for v in value)
    return False


def adapter_problems(resource_type: ResourceType, address: ResourceAddress, inputs: Dict[str, Any]) -> List[str]:
    """Run the adapter's own checks. An exception from the adapter is reported as a problem."""
    try:
        return list(resource_type.adapter.validate(address, inputs))
    except ReconcilerError:
        raise
    except Exception as e:
        logger.debug(f"{address}: adapter validation raised {type(e).__name__}", exc_info=True)
        return [f"validation raised {type(e).__name__}: {e}"]
