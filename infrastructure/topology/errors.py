"""Errors raised while validating or ordering a topology declaration."""

from typing import Any


class TopologyError(Exception):
    """Base class for declaration errors."""


class TopologyValidationError(TopologyError):
    """One or more policy checks failed."""

    def __init__(self, violations: list[Any]) -> None:
        self.violations = violations
        summary = "; ".join(str(v) for v in violations)
        super().__init__(f"{len(violations)} policy violation(s): {summary}")


class UnknownReferenceError(TopologyError):
    """A resource references something that is not declared."""

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"{source} references undeclared resource {target}")


class DependencyCycleError(TopologyError):
    """The dependency graph is not a DAG."""

    def __init__(self, nodes: list[str]) -> None:
        self.nodes = nodes
        super().__init__(f"dependency cycle between: {', '.join(nodes)}")
