"""Pydantic models for plans."""

from enum import Enum
from typing import List, Dict, Any, Optional, Set, Tuple
from pydantic import BaseModel, Field


class Action(str, Enum):
    """Plan step actions."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DESTROY = "destroy"
    NO_OP = "no-op"


class Phase(str, Enum):
    """Halves of a step as the executor schedules them. A replace has both."""
    DESTROY = "destroy"
    APPLY = "apply"


PhaseNode = Tuple[str, Phase]


ACTION_SYMBOLS = {
    Action.CREATE: "+",
    Action.UPDATE: "~",
    Action.REPLACE: "-/+",
    Action.DESTROY: "-",
    Action.NO_OP: " ",
}


class AttributeChange(BaseModel):
    """Before/after values of one attribute."""
    before: Any = Field(default=None, description="Last-applied value")
    after: Any = Field(default=None, description="Planned value (None when known after apply)")
    known_after_apply: bool = Field(default=False, description="Value depends on a resource not yet applied")
    forces_replacement: bool = Field(default=False, description="Attribute is immutable for this type")


class PlanStep(BaseModel):
    """One action against one resource address."""
    action: Action = Field(..., description="What the executor will do")
    address: str = Field(..., description="Resource address")
    resource_type: str = Field(..., description="Resource type")
    changes: Dict[str, AttributeChange] = Field(default_factory=dict, description="Attribute diffs")
    depends_on: List[str] = Field(default_factory=list, description="Addresses whose steps must succeed first")
    destroy_after: List[str] = Field(
        default_factory=list,
        description="Replace only: addresses whose removal must finish before the old object is destroyed"
    )
    reason: Optional[str] = Field(default=None, description="Why this action was chosen")
    
    @property
    def symbol(self) -> str:
        return ACTION_SYMBOLS[self.action]
    
    @property
    def phases(self) -> List[Phase]:
        if self.action == Action.DESTROY:
            return [Phase.DESTROY]
        if self.action == Action.REPLACE:
            return [Phase.DESTROY, Phase.APPLY]
        return [Phase.APPLY]


class Plan(BaseModel):
    """Ordered sequence of plan steps."""
    steps: List[PlanStep] = Field(default_factory=list)
    destroy: bool = Field(default=False, description="Plan targets an empty configuration")
    
    @property
    def changes(self) -> List[PlanStep]:
        """Steps that do something (everything except no-op)."""
        return [s for s in self.steps if s.action != Action.NO_OP]
    
    @property
    def has_changes(self) -> bool:
        return bool(self.changes)
    
    @property
    def addresses(self) -> List[str]:
        return [s.address for s in self.steps]
    
    def step_for(self, address: str) -> Optional[PlanStep]:
        for step in self.steps:
            if step.address == address:
                return step
        return None
    
    def index_of(self, address: str) -> int:
        return self.addresses.index(address)
    
    def count(self, action: Action) -> int:
        return sum(1 for s in self.steps if s.action == action)
    
    def summary(self) -> str:
        """Terraform-style one line summary."""
        if not self.has_changes:
            return "No changes. Infrastructure matches the configuration."
        return (
            f"Plan: {self.count(Action.CREATE)} to create, "
            f"{self.count(Action.UPDATE)} to update, "
            f"{self.count(Action.REPLACE)} to replace, "
            f"{self.count(Action.DESTROY)} to destroy."
        )
    
    def phase_prerequisites(self) -> Dict[PhaseNode, Set[PhaseNode]]:
        """
        Map every (address, phase) to the phases that must succeed before it.

        Removals wait for the removal of everything that depended on them
        (or, for a resource that stays, its apply). Applies wait for the
        applies of their dependencies, and a replacement's apply waits for
        its own removal.
        """
        steps = {s.address: s for s in self.steps}

        def removal(address: str) -> PhaseNode:
            return (address, steps[address].phases[0])

        def application(address: str) -> PhaseNode:
            return (address, steps[address].phases[-1])

        prerequisites: Dict[PhaseNode, Set[PhaseNode]] = {}
        for step in self.steps:
            if step.action == Action.DESTROY:
                prerequisites[(step.address, Phase.DESTROY)] = {removal(a) for a in step.depends_on if a in steps}
                continue
            applied = {application(a) for a in step.depends_on if a in steps}
            if step.action == Action.REPLACE:
                prerequisites[(step.address, Phase.DESTROY)] = {removal(a) for a in step.destroy_after if a in steps}
                applied.add((step.address, Phase.DESTROY))
            prerequisites[(step.address, Phase.APPLY)] = applied
        return prerequisites
