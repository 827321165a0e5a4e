"""Walk a plan with a bounded worker pool, recording results in the state store."""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set
from ..config.settings import RetrySettings
from ..ingest.expressions import Reference, lookup_path, resolve
from ..ingest.models import ResourceAddress, ResourceDefinition
from ..plan.models import Action, Phase, PhaseNode, Plan, PlanStep
from ..registry.registry import ResourceTypeRegistry
from ..registry.schema import adapter_problems, check_attributes
from ..state.models import ResourceState, ResourceStatus
from ..state.store import StateStore
from ..utils.errors import ReconcilerError, RemoteOperationError, SchemaValidationError
from ..utils.logging import get_logger
from .report import ApplyReport, OutcomeStatus, ResourceOutcome, SUCCESS_BY_ACTION

logger = get_logger("execute.executor")


class Executor:
    """
    Data-flow scheduler over a plan.

    A step phase is submitted once every phase it waits on has succeeded. A failed
    step blocks its transitive dependents; independent branches keep going.
    Cancellation stops new submissions and lets in-flight calls settle.
    """

    def __init__(
        self,
        registry: ResourceTypeRegistry,
        store: StateStore,
        definitions: Optional[Dict[str, ResourceDefinition]] = None,
        parallelism: int = 10,
        retry: Optional[RetrySettings] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.registry = registry
        self.store = store
        self.definitions = definitions or {}
        self.parallelism = max(1, parallelism)
        self.retry = retry or RetrySettings()
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep
        self._statuses: Dict[str, ResourceStatus] = {}
        self._status_lock = threading.Lock()

    def cancel(self) -> None:
        """Stop scheduling new steps; in-flight steps finish normally."""
        self.cancel_event.set()

    def status_of(self, address: str) -> Optional[ResourceStatus]:
        with self._status_lock:
            return self._statuses.get(address)

    def execute(self, plan: Plan) -> ApplyReport:
        """
        Execute every step of the plan.

        A replace runs as two phases: the old object is removed once every
        replaced or destroyed resource that referenced it is gone, and the new
        one is created once its dependencies are applied.

        Args:
            plan: Plan from the plan engine

        Returns:
            ApplyReport with one outcome per step, in plan order
        """
        steps = {step.address: step for step in plan.steps}
        prerequisites = plan.phase_prerequisites()
        dependents: Dict[PhaseNode, List[PhaseNode]] = {node: [] for node in prerequisites}
        for node, needed in prerequisites.items():
            for prerequisite in needed:
                dependents[prerequisite].append(node)

        for address in steps:
            self._set_status(address, ResourceStatus.PLANNED)

        pending: List[PhaseNode] = [(step.address, phase) for step in plan.steps for phase in step.phases]
        attempts = {address: [0] for address in steps}
        succeeded: Set[PhaseNode] = set()
        outcomes: Dict[str, ResourceOutcome] = {}
        running: Dict[Future, PhaseNode] = {}

        logger.info(f"Executing {len(plan.changes)} change(s) with parallelism {self.parallelism}")

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="reconciler") as pool:
            while pending or running:
                if self.cancel_event.is_set():
                    self._skip_remaining(pending, steps, outcomes)
                    pending = []
                else:
                    for node in list(pending):
                        if len(running) >= self.parallelism:
                            break
                        if prerequisites[node] <= succeeded:
                            pending.remove(node)
                            address, phase = node
                            self._set_status(address, ResourceStatus.APPLYING)
                            running[pool.submit(self._run_phase, steps[address], phase, attempts[address])] = node

                if not running:
                    break

                try:
                    done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    logger.warning("Interrupt received; waiting for in-flight operations to finish")
                    self.cancel_event.set()
                    continue

                for future in done:
                    node = running.pop(future)
                    outcome = future.result()
                    if outcome is not None and outcome.status == OutcomeStatus.FAILED:
                        outcomes[node[0]] = outcome
                        pending = self._block_dependents(node[0], node, dependents, pending, steps, outcomes)
                        continue
                    succeeded.add(node)
                    if outcome is not None:
                        outcomes[node[0]] = outcome

        self._skip_remaining(pending, steps, outcomes)

        report = ApplyReport(
            outcomes=[outcomes[step.address] for step in plan.steps],
            cancelled=self.cancel_event.is_set()
        )
        logger.info(report.summary())
        return report

    def _skip_remaining(self, pending: List[PhaseNode], steps: Dict[str, PlanStep], outcomes: Dict[str, ResourceOutcome]) -> None:
        for address, _ in pending:
            if address not in outcomes:
                outcomes[address] = self._skipped(steps[address], cancelled=self.cancel_event.is_set())

    def _block_dependents(
        self,
        failed: str,
        node: PhaseNode,
        dependents: Dict[PhaseNode, List[PhaseNode]],
        pending: List[PhaseNode],
        steps: Dict[str, PlanStep],
        outcomes: Dict[str, ResourceOutcome]
    ) -> List[PhaseNode]:
        """Mark every transitive dependent of a failed phase as skipped."""
        for dependent in dependents[node]:
            if dependent in pending:
                pending = [n for n in pending if n != dependent]
                address = dependent[0]
                if address not in outcomes:
                    outcomes[address] = self._skipped(steps[address], blocked_by=failed)
                    logger.warning(f"{address}: skipped, blocked by failed {failed}")
                pending = self._block_dependents(failed, dependent, dependents, pending, steps, outcomes)
        return pending

    def _skipped(self, step: PlanStep, blocked_by: Optional[str] = None, cancelled: bool = False) -> ResourceOutcome:
        return ResourceOutcome(
            address=step.address,
            action=step.action,
            status=OutcomeStatus.SKIPPED,
            resource_status=self.status_of(step.address) or ResourceStatus.PLANNED,
            blocked_by=blocked_by,
            cancelled=cancelled
        )

    def _run_phase(self, step: PlanStep, phase: Phase, attempts: List[int]) -> Optional[ResourceOutcome]:
        """
        Run one phase of a step in a worker thread.

        Returns None after the removal half of a replace, otherwise the
        step's outcome. Any exception becomes a FAILED outcome.
        """
        try:
            if phase == Phase.DESTROY:
                self._destroy(step, attempts)
                if step.action == Action.REPLACE:
                    logger.debug(f"{step.address}: old object removed, creating replacement")
                    return None
            elif step.action == Action.NO_OP:
                self._record_dependencies(step)
            elif step.action in (Action.CREATE, Action.REPLACE):
                self._create(step, attempts)
            elif step.action == Action.UPDATE:
                self._update(step, attempts)
        except ReconcilerError as e:
            return self._failed(step, str(e), attempts[0])
        except Exception as e:
            logger.debug(f"{step.address}: {type(e).__name__} during {phase.value}", exc_info=True)
            return self._failed(step, f"{type(e).__name__}: {e}", attempts[0])

        final = ResourceStatus.DESTROYED if step.action == Action.DESTROY else ResourceStatus.APPLIED
        self._set_status(step.address, final)
        if step.action != Action.NO_OP:
            logger.info(f"{step.address}: {SUCCESS_BY_ACTION[step.action].value}")
        return ResourceOutcome(
            address=step.address,
            action=step.action,
            status=SUCCESS_BY_ACTION[step.action],
            resource_status=final,
            attempts=attempts[0]
        )

    def _failed(self, step: PlanStep, reason: str, attempts: int) -> ResourceOutcome:
        logger.error(f"{step.address}: {step.action.value} failed: {reason}")
        self._set_status(step.address, ResourceStatus.FAILED)
        previous = self.store.get(step.address)
        if previous is not None and step.action == Action.UPDATE:
            try:
                self.store.save(previous.model_copy(update={"status": ResourceStatus.FAILED}))
            except ReconcilerError as e:
                logger.error(f"{step.address}: could not record failed status: {e}")
        return ResourceOutcome(
            address=step.address,
            action=step.action,
            status=OutcomeStatus.FAILED,
            resource_status=ResourceStatus.FAILED,
            reason=reason,
            attempts=attempts
        )

    def _create(self, step: PlanStep, attempts: List[int]) -> None:
        definition = self._definition(step)
        resource_type = self.registry.require(definition.type, step.address)
        inputs = self._resolve_inputs(definition)
        self._validate(step.address, definition, inputs)
        outputs = self._call(step, attempts, resource_type.adapter.create, definition.address, inputs)
        self.store.save(ResourceState(
            address=step.address,
            type=definition.type,
            inputs=inputs,
            outputs=outputs or {},
            dependencies=step.depends_on,
            status=ResourceStatus.APPLIED
        ))

    def _update(self, step: PlanStep, attempts: List[int]) -> None:
        definition = self._definition(step)
        previous = self._previous(step)
        resource_type = self.registry.require(definition.type, step.address)
        inputs = self._resolve_inputs(definition)
        for name in definition.lifecycle.ignore_changes:
            if name in previous.inputs:
                inputs[name] = previous.inputs[name]
            else:
                inputs.pop(name, None)
        self._validate(step.address, definition, inputs)
        outputs = self._call(step, attempts, resource_type.adapter.update, definition.address, inputs, previous.outputs)
        self.store.save(ResourceState(
            address=step.address,
            type=definition.type,
            inputs=inputs,
            outputs=outputs or {},
            dependencies=step.depends_on,
            status=ResourceStatus.APPLIED
        ))

    def _destroy(self, step: PlanStep, attempts: List[int]) -> None:
        previous = self._previous(step)
        resource_type = self.registry.require(previous.type, step.address)
        address = ResourceAddress.parse(step.address)
        self._call(step, attempts, resource_type.adapter.destroy, address, previous.outputs)
        self.store.remove(step.address)

    def _record_dependencies(self, step: PlanStep) -> None:
        previous = self.store.get(step.address)
        if previous is not None and previous.dependencies != step.depends_on:
            self.store.save(previous.model_copy(update={"dependencies": list(step.depends_on)}))

    def _call(self, step: PlanStep, attempts: List[int], operation: Callable[..., Any], *args: Any) -> Any:
        """Invoke an adapter operation, retrying retryable remote errors with linear backoff."""
        max_attempts = self.retry.max_attempts
        while True:
            attempts[0] += 1
            try:
                return operation(*args)
            except RemoteOperationError as e:
                if e.address is None:
                    e.address = step.address
                if not e.retryable or attempts[0] >= max_attempts or self.cancel_event.is_set():
                    raise
                delay = self.retry.backoff_seconds * attempts[0]
                logger.warning(
                    f"{step.address}: retryable error on attempt {attempts[0]}/{max_attempts}: {e}; "
                    f"retrying in {delay:.1f}s"
                )
                self._sleep(delay)
            except ReconcilerError:
                raise
            except Exception as e:
                logger.debug(f"{step.address}: adapter raised {type(e).__name__}", exc_info=True)
                raise RemoteOperationError(f"{type(e).__name__}: {e}", retryable=False, address=step.address) from e

    def _resolve_inputs(self, definition: ResourceDefinition) -> Dict[str, Any]:
        """Substitute references with the values recorded for already-applied dependencies."""
        source = str(definition.address)

        def lookup(reference: Reference) -> Any:
            target = self.store.get(str(reference.address))
            if target is None:
                raise RemoteOperationError(f"{source}: dependency {reference.address} has no recorded state", address=source)
            try:
                return lookup_path(target.attributes, reference.path)
            except KeyError:
                raise RemoteOperationError(
                    f"{source}: {reference.address} does not export '{reference.path_string}'",
                    address=source
                )

        return resolve(definition.attributes, lookup)

    def _validate(self, address: str, definition: ResourceDefinition, inputs: Dict[str, Any]) -> None:
        resource_type = self.registry.require(definition.type, address)
        problems = check_attributes(resource_type, inputs)
        problems.extend(adapter_problems(resource_type, definition.address, inputs))
        if problems:
            raise SchemaValidationError(address, problems)

    def _definition(self, step: PlanStep) -> ResourceDefinition:
        definition = self.definitions.get(step.address)
        if definition is None:
            raise ReconcilerError(f"{step.address}: no definition available for {step.action.value}")
        return definition

    def _previous(self, step: PlanStep) -> ResourceState:
        previous = self.store.get(step.address)
        if previous is None:
            raise ReconcilerError(f"{step.address}: no recorded state to {step.action.value}")
        return previous

    def _set_status(self, address: str, status: ResourceStatus) -> None:
        with self._status_lock:
            self._statuses[address] = status
