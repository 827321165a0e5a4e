"""Plan/apply/destroy orchestration over the graph, planner, executor and state store."""

import threading
from typing import Dict, Optional
from .config.settings import Settings
from .execute.executor import Executor
from .execute.report import ApplyReport
from .graph.dependency_graph import DependencyGraph
from .ingest.config_loader import load_configuration
from .ingest.models import Configuration, ResourceAddress
from .plan.models import Plan
from .plan.planner import build_destroy_plan, build_plan
from .registry.registry import ResourceTypeRegistry
from .registry.schema import validate_configuration
from .state.models import ResourceState
from .state.store import StateStore
from .utils.errors import ReconcilerError, RemoteOperationError
from .utils.logging import get_logger

logger = get_logger("engine")


class Reconciler:
    """Turns declared configuration plus prior state into a plan, and executes it."""

    def __init__(self, registry: ResourceTypeRegistry, store: StateStore, settings: Optional[Settings] = None):
        self.registry = registry
        self.store = store
        self.settings = settings or Settings()
        self.cancel_event = threading.Event()

    def load(self, config_path: str, var_file: Optional[str] = None) -> Configuration:
        """Load configuration files and variables."""
        return load_configuration(config_path, var_file)

    def validate(self, configuration: Configuration) -> DependencyGraph:
        """
        Build the dependency graph and check every definition against its schema.

        Raises:
            CycleDetected, UnknownReference, SchemaValidationError: before any remote call
        """
        graph = DependencyGraph()
        graph.build_from_definitions(configuration.definitions)
        validate_configuration(configuration, self.registry)
        return graph

    def refresh(self, prior: Dict[str, ResourceState], persist: bool = False) -> Dict[str, ResourceState]:
        """
        Read every recorded resource from its adapter.

        Records whose remote object is gone are dropped; the rest get the
        freshly read outputs. With persist=True the store is updated too.
        """
        refreshed: Dict[str, ResourceState] = {}
        for address, record in prior.items():
            resource_type = self.registry.require(record.type, address)
            try:
                outputs = resource_type.adapter.read(ResourceAddress.parse(address), record.outputs)
            except ReconcilerError:
                raise
            except Exception as e:
                raise RemoteOperationError(f"{address}: refresh failed: {e}", address=address) from e

            if outputs is None:
                logger.warning(f"{address} no longer exists remotely; it will be planned for creation")
                if persist:
                    self.store.remove(address)
                continue

            if outputs != record.outputs:
                record = record.model_copy(update={"outputs": outputs})
                if persist:
                    self.store.save(record)
            refreshed[address] = record
        return refreshed

    def plan(
        self,
        configuration: Configuration,
        refresh: Optional[bool] = None,
        allow_replace: Optional[bool] = None
    ) -> Plan:
        """
        Validate the configuration and compute a plan against current state.

        Args:
            configuration: Declared resources
            refresh: Read remote objects first (defaults to settings.refresh)
            allow_replace: Permit replacement (defaults to settings.allow_replace)
        """
        graph = self.validate(configuration)
        with self.store.locked():
            prior = self._prior(refresh)
            return build_plan(
                configuration,
                graph,
                prior,
                self.registry,
                allow_replace=self.settings.allow_replace if allow_replace is None else allow_replace
            )

    def plan_destroy(self, configuration: Optional[Configuration] = None, refresh: Optional[bool] = None) -> Plan:
        """Compute a plan whose target is an empty configuration."""
        with self.store.locked():
            prior = self._prior(refresh)
            return build_destroy_plan(prior, self.registry, configuration)

    def execute(self, plan: Plan, configuration: Optional[Configuration] = None) -> ApplyReport:
        """Execute a plan under the state lock."""
        definitions = configuration.by_address() if configuration else {}
        executor = Executor(
            self.registry,
            self.store,
            definitions=definitions,
            parallelism=self.settings.parallelism,
            retry=self.settings.retry,
            cancel_event=self.cancel_event
        )
        with self.store.locked():
            return executor.execute(plan)

    def apply(self, configuration: Configuration, refresh: Optional[bool] = None, allow_replace: Optional[bool] = None) -> ApplyReport:
        """Plan and execute in one lock acquisition."""
        with self.store.locked():
            plan = self.plan(configuration, refresh=refresh, allow_replace=allow_replace)
            return self.execute(plan, configuration)

    def destroy(self, configuration: Optional[Configuration] = None, refresh: Optional[bool] = None) -> ApplyReport:
        """Destroy every recorded resource in reverse dependency order."""
        with self.store.locked():
            plan = self.plan_destroy(configuration, refresh=refresh)
            return self.execute(plan, configuration)

    def cancel(self) -> None:
        """Ask a running execute() to stop scheduling new steps."""
        self.cancel_event.set()

    def _prior(self, refresh: Optional[bool]) -> Dict[str, ResourceState]:
        prior = self.store.snapshot()
        if self.settings.refresh if refresh is None else refresh:
            prior = self.refresh(prior, persist=True)
        return prior
