"""Plan engine: diff declared against prior state and order the actions."""

from .models import Action, AttributeChange, Phase, Plan, PlanStep
from .planner import build_plan, build_destroy_plan

__all__ = ["Action", "AttributeChange", "Phase", "Plan", "PlanStep", "build_plan", "build_destroy_plan"]
