"""Custom exception classes for reconciler."""

from typing import List, Optional


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""
    pass


class ConfigError(ReconcilerError):
    """Raised when settings are invalid or missing."""
    pass


class ConfigurationLoadError(ReconcilerError):
    """Raised when resource configuration files cannot be loaded or are malformed."""
    pass


class VariableError(ConfigurationLoadError):
    """Raised when a variable is undeclared or has no value."""
    pass


class GraphConstructionError(ReconcilerError):
    """Raised when the dependency graph cannot be built."""
    pass


class CycleDetected(GraphConstructionError):
    """Raised when a resource directly or transitively depends on its own output."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Dependency cycle detected: {path}")


class UnknownReference(GraphConstructionError):
    """Raised when an expression names an address with no matching definition."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"Resource '{source}' references undeclared resource '{target}'")


class SchemaValidationError(ReconcilerError):
    """Raised when an attribute is missing, unknown or of the wrong type."""

    def __init__(self, address: str, problems: List[str]):
        self.address = address
        self.problems = list(problems)
        super().__init__(f"Invalid configuration for {address}: {'; '.join(self.problems)}")


class UnknownResourceType(SchemaValidationError):
    """Raised when a definition uses a type that has no registration."""

    def __init__(self, address: str, resource_type: str):
        self.resource_type = resource_type
        super().__init__(address, [f"resource type '{resource_type}' is not registered"])


class RemoteOperationError(ReconcilerError):
    """Wraps a failure reported by a resource adapter."""

    def __init__(self, message: str, retryable: bool = False, address: Optional[str] = None):
        self.retryable = retryable
        self.address = address
        super().__init__(message)


class StateError(ReconcilerError):
    """Raised when the state file cannot be read or written."""
    pass


class StateConflict(StateError):
    """Raised when another run already holds the state lock."""
    pass


class PlanError(ReconcilerError):
    """Raised when a plan cannot be produced for the requested changes."""
    pass


class ReplaceRequiredButDenied(PlanError):
    """Raised when an update needs destroy+create but replacement was disallowed."""

    def __init__(self, address: str, attributes: List[str]):
        self.address = address
        self.attributes = list(attributes)
        super().__init__(
            f"{address} must be replaced because immutable attribute(s) changed: "
            f"{', '.join(self.attributes)}; replacement is disabled"
        )


class DestroyPrevented(PlanError):
    """Raised when the plan would destroy a resource marked prevent_destroy."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"{address} has lifecycle.prevent_destroy set and cannot be destroyed")
