"""Diff declared resources against prior state and order the resulting actions."""

from typing import Any, Callable, Dict, List, Optional, Set
import networkx as nx
from ..graph.dependency_graph import DependencyGraph
from ..ingest.expressions import UNKNOWN, Reference, contains_unknown, lookup_path, resolve
from ..ingest.models import Configuration, ResourceDefinition
from ..registry.base import ResourceType
from ..registry.registry import ResourceTypeRegistry
from ..state.models import ResourceState, ResourceStatus
from ..utils.errors import DestroyPrevented, PlanError, ReplaceRequiredButDenied
from ..utils.logging import get_logger
from .models import Action, AttributeChange, Plan, PlanStep

logger = get_logger("plan.planner")


def build_plan(
    configuration: Configuration,
    graph: DependencyGraph,
    prior: Dict[str, ResourceState],
    registry: ResourceTypeRegistry,
    allow_replace: bool = True
) -> Plan:
    """
    Compute the ordered actions that bring prior state to the configuration.

    Non-destroy steps come in topological order (dependencies first, ties by
    declaration order). Destroy steps for resources no longer declared follow,
    in reverse topological order of the dependencies recorded in state.
    A replaced resource is only removed after every replaced or destroyed
    resource that referenced it in state has been removed.

    Args:
        configuration: Declared resources
        graph: Dependency graph built from the configuration
        prior: Last-applied records keyed by address
        registry: Resource types (schemas and immutability)
        allow_replace: When False, a change to an immutable attribute raises

    Returns:
        Plan

    Raises:
        ReplaceRequiredButDenied: If replacement is needed but disallowed
        DestroyPrevented: If a prevent_destroy resource would be replaced
        UnknownResourceType: If a declared or recorded type is not registered
        PlanError: If removals and applies would have to wait on each other
    """
    definitions = configuration.by_address()
    planned_inputs: Dict[str, Dict[str, Any]] = {}
    pending_outputs: Set[str] = set()
    lookup = _plan_lookup(planned_inputs, pending_outputs, prior)
    steps: List[PlanStep] = []

    for address in graph.topological_order():
        definition = definitions[address]
        resource_type = registry.require(definition.type, address)
        desired = resolve(definition.attributes, lookup)
        dependencies = graph.get_dependencies(address)
        previous = prior.get(address)

        if previous is None:
            step = _create_step(address, resource_type, desired, dependencies)
        else:
            step = _diff_step(definition, resource_type, desired, previous, dependencies, allow_replace)
            desired = _apply_ignored(definition, desired, previous)

        if step.action in (Action.CREATE, Action.REPLACE):
            pending_outputs.add(address)
        planned_inputs[address] = desired
        steps.append(step)

    state_graph = _state_graph(prior, configuration) if prior else None
    orphans = [address for address in prior if address not in definitions]
    if orphans:
        for address in state_graph.reverse_topological_order():
            if address not in definitions:
                registry.require(prior[address].type, address)
                steps.append(PlanStep(
                    action=Action.DESTROY,
                    address=address,
                    resource_type=prior[address].type,
                    depends_on=state_graph.get_dependents(address),
                    reason="no longer declared in configuration"
                ))

    by_address = {step.address: step for step in steps}
    for step in steps:
        if step.action == Action.REPLACE:
            step.destroy_after = [
                dependent for dependent in state_graph.get_dependents(step.address)
                if dependent in by_address and by_address[dependent].action in (Action.REPLACE, Action.DESTROY)
            ]

    plan = Plan(steps=steps)
    _check_phase_order(plan)
    logger.info(plan.summary())
    return plan


def build_destroy_plan(
    prior: Dict[str, ResourceState],
    registry: ResourceTypeRegistry,
    configuration: Optional[Configuration] = None
) -> Plan:
    """
    Plan the destruction of every recorded resource.

    The order is the exact reverse of the creation order: dependents are
    destroyed before the resources they reference. When the configuration is
    given, its declaration order breaks ties (matching the creation plan) and
    its prevent_destroy flags are honoured.

    Raises:
        DestroyPrevented: If a declared resource has lifecycle.prevent_destroy
    """
    definitions = configuration.by_address() if configuration else {}
    state_graph = _state_graph(prior, configuration)
    steps = []

    for address in state_graph.reverse_topological_order():
        definition = definitions.get(address)
        if definition is not None and definition.lifecycle.prevent_destroy:
            raise DestroyPrevented(address)
        registry.require(prior[address].type, address)
        steps.append(PlanStep(
            action=Action.DESTROY,
            address=address,
            resource_type=prior[address].type,
            depends_on=state_graph.get_dependents(address),
            reason="destroy requested"
        ))

    plan = Plan(steps=steps, destroy=True)
    logger.info(plan.summary())
    return plan


def _plan_lookup(
    planned_inputs: Dict[str, Dict[str, Any]],
    pending_outputs: Set[str],
    prior: Dict[str, ResourceState]
) -> Callable[[Reference], Any]:
    """Resolve references at plan time: planned inputs, then recorded outputs, else unknown."""

    def lookup(reference: Reference) -> Any:
        address = str(reference.address)
        inputs = planned_inputs.get(address, {})
        if reference.attribute in inputs:
            try:
                return lookup_path(inputs, reference.path)
            except KeyError:
                return UNKNOWN
        if address in pending_outputs or address not in prior:
            return UNKNOWN
        try:
            return lookup_path(prior[address].outputs, reference.path)
        except KeyError:
            return UNKNOWN

    return lookup


def _create_step(address: str, resource_type: ResourceType, desired: Dict[str, Any], dependencies: List[str]) -> PlanStep:
    changes = {name: _change(None, value, resource_type.is_immutable(name)) for name, value in desired.items()}
    for name in resource_type.computed_attributes():
        if name not in changes:
            changes[name] = AttributeChange(known_after_apply=True)
    return PlanStep(
        action=Action.CREATE,
        address=address,
        resource_type=resource_type.name,
        changes=changes,
        depends_on=dependencies,
        reason="not present in state"
    )


def _diff_step(
    definition: ResourceDefinition,
    resource_type: ResourceType,
    desired: Dict[str, Any],
    previous: ResourceState,
    dependencies: List[str],
    allow_replace: bool
) -> PlanStep:
    address = str(definition.address)
    ignored = set(definition.lifecycle.ignore_changes)
    names = list(desired) + [n for n in previous.inputs if n not in desired]

    changes: Dict[str, AttributeChange] = {}
    for name in names:
        if name in ignored:
            continue
        before = previous.inputs.get(name)
        after = desired.get(name)
        if contains_unknown(after) or after != before:
            changes[name] = _change(before, after, resource_type.is_immutable(name))

    forcing = [name for name, change in changes.items() if change.forces_replacement]

    if forcing:
        if definition.lifecycle.prevent_destroy:
            raise DestroyPrevented(address)
        if not allow_replace:
            raise ReplaceRequiredButDenied(address, forcing)
        for name in resource_type.computed_attributes():
            changes.setdefault(name, AttributeChange(before=previous.outputs.get(name), known_after_apply=True))
        action, reason = Action.REPLACE, f"forces replacement: {', '.join(forcing)}"
    elif changes:
        action, reason = Action.UPDATE, f"{len(changes)} attribute(s) changed"
    elif previous.status == ResourceStatus.FAILED:
        action, reason = Action.UPDATE, "previous apply failed"
    else:
        action, reason = Action.NO_OP, None

    return PlanStep(
        action=action,
        address=address,
        resource_type=definition.type,
        changes=changes,
        depends_on=dependencies,
        reason=reason
    )


def _apply_ignored(definition: ResourceDefinition, desired: Dict[str, Any], previous: ResourceState) -> Dict[str, Any]:
    """Ignored attributes keep their last-applied value."""
    effective = dict(desired)
    for name in definition.lifecycle.ignore_changes:
        if name in previous.inputs:
            effective[name] = previous.inputs[name]
        else:
            effective.pop(name, None)
    return effective


def _change(before: Any, after: Any, immutable: bool) -> AttributeChange:
    if contains_unknown(after):
        return AttributeChange(before=before, after=None, known_after_apply=True, forces_replacement=immutable)
    return AttributeChange(before=before, after=after, forces_replacement=immutable)


def _check_phase_order(plan: Plan) -> None:
    """Raise PlanError when removals and applies wait on each other."""
    graph = nx.DiGraph()
    for node, prerequisites in plan.phase_prerequisites().items():
        graph.add_node(node)
        graph.add_edges_from((node, prerequisite) for prerequisite in prerequisites)
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return
    path = " -> ".join(f"{address} ({phase.value})" for (address, phase), _ in cycle)
    raise PlanError(f"Steps cannot be ordered without deleting an object that is still referenced: {path}")


def _state_graph(prior: Dict[str, ResourceState], configuration: Optional[Configuration]) -> DependencyGraph:
    """Graph of recorded dependencies; declaration order first, then state order, breaks ties."""
    declared = configuration.addresses if configuration else []
    order = {address: index for index, address in enumerate(declared)}
    for index, address in enumerate(prior):
        order.setdefault(address, len(declared) + index)

    graph = DependencyGraph()
    graph.build_from_dependencies({address: record.dependencies for address, record in prior.items()}, order)
    return graph
