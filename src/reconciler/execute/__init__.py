"""Executor: apply a plan through resource adapters."""

from .executor import Executor
from .report import ApplyReport, OutcomeStatus, ResourceOutcome

__all__ = ["Executor", "ApplyReport", "OutcomeStatus", "ResourceOutcome"]
