"""Reconciler - declarative infrastructure plan and apply engine."""

from typing import Optional
from .config import Settings, load_settings
from .engine import Reconciler
from .execute.report import ApplyReport
from .graph.dependency_graph import DependencyGraph
from .ingest.config_loader import load_configuration
from .plan.models import Plan
from .providers import build_default_registry
from .state.store import StateStore
from .utils.logging import setup_logging, get_logger
from .utils.errors import ReconcilerError

__version__ = "0.1.0"

__all__ = [
    "Reconciler",
    "ApplyReport",
    "DependencyGraph",
    "Plan",
    "Settings",
    "StateStore",
    "ReconcilerError",
    "build_default_registry",
    "load_configuration",
    "load_settings",
    "run_plan",
    "run_apply",
]

setup_logging()
logger = get_logger("reconciler")


def _reconciler(state_path: Optional[str], settings: Optional[Settings]) -> Reconciler:
    if settings is None:
        settings = load_settings({"state_path": state_path})
    elif state_path:
        settings = settings.model_copy(update={"state_path": state_path})
    registry = build_default_registry(settings.provider_store_path)
    return Reconciler(registry, StateStore(settings.state_path, lock_timeout=settings.lock_timeout), settings)


def run_plan(config_path: str, state_path: Optional[str] = None, var_file: Optional[str] = None, settings: Optional[Settings] = None) -> Plan:
    """Load a configuration and plan it against the simulated provider."""
    reconciler = _reconciler(state_path, settings)
    return reconciler.plan(reconciler.load(config_path, var_file))


def run_apply(config_path: str, state_path: Optional[str] = None, var_file: Optional[str] = None, settings: Optional[Settings] = None) -> ApplyReport:
    """Load a configuration, plan it and execute the plan without confirmation."""
    reconciler = _reconciler(state_path, settings)
    configuration = reconciler.load(config_path, var_file)
    logger.info(f"Applying {config_path}")
    return reconciler.apply(configuration)
