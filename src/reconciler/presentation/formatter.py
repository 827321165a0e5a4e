"""Human-friendly and JSON formatting of plans, apply reports and state."""

import json
import os
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from ..execute.report import ApplyReport, OutcomeStatus
from ..plan.models import ACTION_SYMBOLS, Action, AttributeChange, Plan, PlanStep
from ..state.models import ResourceState

KNOWN_AFTER_APPLY = "(known after apply)"


def _use_color(color: Optional[bool] = None) -> bool:
    """Resolve whether to colour output (checked at format time)."""
    if color is not None:
        return bool(color)
    return os.environ.get("RECONCILER_COLOR", "").lower() in ("1", "true", "yes")


def _paint(text: str, action: Action, color: bool) -> str:
    if not color:
        return text
    codes = {
        Action.CREATE: "32",
        Action.UPDATE: "33",
        Action.REPLACE: "35",
        Action.DESTROY: "31",
    }
    code = codes.get(action)
    return f"\033[{code}m{text}\033[0m" if code else text


def _value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def _change_line(name: str, change: AttributeChange, action: Action, width: int) -> str:
    after = KNOWN_AFTER_APPLY if change.known_after_apply else _value(change.after)
    if action == Action.CREATE:
        line = f"{name:<{width}} = {after}"
    elif action == Action.DESTROY:
        line = f"{name:<{width}} = {_value(change.before)}"
    else:
        line = f"{name:<{width}} = {_value(change.before)} -> {after}"
    if change.forces_replacement and action == Action.REPLACE:
        line += " # forces replacement"
    return line


def format_step(step: PlanStep, color: Optional[bool] = None) -> List[str]:
    """Lines for one plan step: header plus attribute changes."""
    color = _use_color(color)
    verbs = {
        Action.CREATE: "will be created",
        Action.UPDATE: "will be updated in-place",
        Action.REPLACE: "must be replaced",
        Action.DESTROY: "will be destroyed",
    }
    lines = [f"  # {step.address} {verbs[step.action]}"]
    if step.reason:
        lines.append(f"  # ({step.reason})")
    lines.append(_paint(f"  {step.symbol} resource \"{step.resource_type}\" \"{step.address.split('.', 1)[1]}\" {{", step.action, color))

    width = max((len(name) for name in step.changes), default=0)
    for name, change in step.changes.items():
        lines.append(f"      {_change_line(name, change, step.action, width)}")
    lines.append("    }")
    return lines


def format_plan(plan: Plan, color: Optional[bool] = None) -> str:
    """
    Render a plan the way an operator reviews it before applying.

    No-op steps are omitted; the summary line counts the rest.

    Args:
        plan: Plan to render
        color: Force ANSI colours on/off (default: RECONCILER_COLOR env var)

    Returns:
        Multi-line text
    """
    if not plan.has_changes:
        return plan.summary()

    lines = [
        "Resource actions are indicated with the following symbols:",
    ]
    used = {step.action for step in plan.changes}
    legend = [
        (Action.CREATE, "create"),
        (Action.UPDATE, "update in-place"),
        (Action.REPLACE, "destroy and then create replacement"),
        (Action.DESTROY, "destroy"),
    ]
    for action, text in legend:
        if action in used:
            lines.append(f"  {_paint(ACTION_SYMBOLS[action].rjust(3), action, _use_color(color))} {text}")
    lines.append("")

    for step in plan.changes:
        lines.extend(format_step(step, color))
        lines.append("")

    lines.append(plan.summary())
    return "\n".join(lines)


def format_report(report: ApplyReport) -> str:
    """One line per resource outcome plus the summary."""
    lines = []
    for outcome in report.outcomes:
        if outcome.status == OutcomeStatus.UNCHANGED:
            continue
        suffix = f" (after {outcome.attempts} attempts)" if outcome.attempts > 1 else ""
        lines.append(f"{outcome.address}: {outcome.describe()}{suffix}")
    if lines:
        lines.append("")
    lines.append(report.summary())
    return "\n".join(lines)


def format_state_list(records: Dict[str, ResourceState]) -> str:
    return "\n".join(records)


def format_state_show(record: ResourceState) -> str:
    """Render a state record with its inputs and exported attributes."""
    lines = [f"# {record.address}:", f"resource \"{record.type}\" \"{record.address.split('.', 1)[1]}\" {{"]
    attributes = record.attributes
    width = max((len(name) for name in attributes), default=0)
    for name in sorted(attributes):
        lines.append(f"    {name:<{width}} = {_value(attributes[name])}")
    lines.append("}")
    if record.dependencies:
        lines.append(f"# depends on: {', '.join(record.dependencies)}")
    if record.status.value != "applied":
        lines.append(f"# status: {record.status.value}")
    return "\n".join(lines)


def to_json(model: BaseModel) -> str:
    """Serialize a pydantic model as indented JSON."""
    return json.dumps(model.model_dump(mode="json"), indent=2)
