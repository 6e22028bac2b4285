"""Network topology declaration, policy checks and dependency ordering."""

from .checks import Violation, ensure_valid, validate_topology
from .defaults import build_topology
from .errors import (
    DependencyCycleError,
    TopologyError,
    TopologyValidationError,
    UnknownReferenceError,
)
from .graph import DependencyGraph, build_graph
from .models import Topology
from .plan import ChangeAction, PlannedChange, plan_changes

__all__ = [
    "ChangeAction",
    "DependencyCycleError",
    "DependencyGraph",
    "PlannedChange",
    "Topology",
    "TopologyError",
    "TopologyValidationError",
    "UnknownReferenceError",
    "Violation",
    "build_graph",
    "build_topology",
    "ensure_valid",
    "plan_changes",
    "validate_topology",
]
