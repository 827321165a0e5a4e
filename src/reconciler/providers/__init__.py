"""Resource-type providers."""

from .aws import build_default_registry
from .simulated import SimulatedAdapter, SimulatedCloud

__all__ = ["build_default_registry", "SimulatedAdapter", "SimulatedCloud"]
