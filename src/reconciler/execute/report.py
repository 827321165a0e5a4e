"""Pydantic models for the per-resource outcome report of an apply."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from ..plan.models import Action
from ..state.models import ResourceStatus


class OutcomeStatus(str, Enum):
    """Final outcome of one plan step."""
    CREATED = "created"
    UPDATED = "updated"
    REPLACED = "replaced"
    DESTROYED = "destroyed"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


SUCCESS_BY_ACTION = {
    Action.CREATE: OutcomeStatus.CREATED,
    Action.UPDATE: OutcomeStatus.UPDATED,
    Action.REPLACE: OutcomeStatus.REPLACED,
    Action.DESTROY: OutcomeStatus.DESTROYED,
    Action.NO_OP: OutcomeStatus.UNCHANGED,
}


class ResourceOutcome(BaseModel):
    """What happened to one resource during apply."""
    address: str = Field(..., description="Resource address")
    action: Action = Field(..., description="Planned action")
    status: OutcomeStatus = Field(..., description="Final outcome")
    resource_status: ResourceStatus = Field(..., description="Lifecycle status after the run")
    reason: Optional[str] = Field(default=None, description="Failure message")
    blocked_by: Optional[str] = Field(default=None, description="Failed resource that blocked this step")
    cancelled: bool = Field(default=False, description="Skipped because the run was cancelled")
    attempts: int = Field(default=0, ge=0, description="Adapter calls made, retries included")
    
    def describe(self) -> str:
        """Outcome text: created, failed: <reason>, skipped: blocked by <address>, ..."""
        if self.status == OutcomeStatus.FAILED:
            return f"failed: {self.reason}"
        if self.status == OutcomeStatus.SKIPPED:
            if self.cancelled:
                return "skipped: cancelled"
            return f"skipped: blocked by {self.blocked_by}"
        return self.status.value


class ApplyReport(BaseModel):
    """Structured report listing every resource's outcome, in plan order."""
    outcomes: List[ResourceOutcome] = Field(default_factory=list)
    cancelled: bool = Field(default=False, description="Run was interrupted before finishing")
    
    def _with(self, *statuses: OutcomeStatus) -> List[ResourceOutcome]:
        return [o for o in self.outcomes if o.status in statuses]
    
    @property
    def succeeded(self) -> List[ResourceOutcome]:
        return self._with(
            OutcomeStatus.CREATED,
            OutcomeStatus.UPDATED,
            OutcomeStatus.REPLACED,
            OutcomeStatus.DESTROYED,
            OutcomeStatus.UNCHANGED
        )
    
    @property
    def failed(self) -> List[ResourceOutcome]:
        return self._with(OutcomeStatus.FAILED)
    
    @property
    def skipped(self) -> List[ResourceOutcome]:
        return self._with(OutcomeStatus.SKIPPED)
    
    @property
    def success(self) -> bool:
        return not self.failed and not self.skipped
    
    def outcome_for(self, address: str) -> Optional[ResourceOutcome]:
        for outcome in self.outcomes:
            if outcome.address == address:
                return outcome
        return None
    
    def count(self, status: OutcomeStatus) -> int:
        return len(self._with(status))
    
    def summary(self) -> str:
        head = "Apply complete!" if self.success else ("Apply cancelled." if self.cancelled else "Apply finished with errors.")
        text = (
            f"{head} Resources: {self.count(OutcomeStatus.CREATED)} created, "
            f"{self.count(OutcomeStatus.UPDATED)} updated, "
            f"{self.count(OutcomeStatus.REPLACED)} replaced, "
            f"{self.count(OutcomeStatus.DESTROYED)} destroyed."
        )
        if not self.success:
            text += f" {len(self.failed)} failed, {len(self.skipped)} skipped."
        return text
