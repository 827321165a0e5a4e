"""State store: last-applied resource records."""

from .models import ResourceState, ResourceStatus, StateDocument
from .store import StateStore

__all__ = ["ResourceState", "ResourceStatus", "StateDocument", "StateStore"]
