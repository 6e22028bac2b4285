"""Dependency graph over the declared resources.

Nodes are resource addresses, edges point from a resource to the resources
it needs to exist first. Most edges come from attribute references (a subnet
uses the network id); the NAT additionally carries an explicit ordering hint
on the subnets it translates.
"""

from collections import defaultdict
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter

import structlog

from .errors import DependencyCycleError, UnknownReferenceError
from .models import Topology

logger = structlog.get_logger()

NETWORK = "network"
ROUTER = "router"
NAT = "nat"

REFERENCE = "reference"
DEPENDS_ON = "depends_on"


def subnet_address(key: str) -> str:
    return f"subnet.{key}"


def firewall_address(name: str) -> str:
    return f"firewall.{name}"


@dataclass(frozen=True)
class Edge:
    """`source` must be applied after `target`.

    `attribute` names the input of `source` that holds the reference; it is
    empty for explicit ordering hints.
    """

    source: str
    target: str
    kind: str = REFERENCE
    attribute: str = ""


class DependencyGraph:
    """Directed acyclic graph of resource addresses."""

    def __init__(self) -> None:
        self._nodes: set[str] = set()
        self._deps: dict[str, set[str]] = defaultdict(set)
        self._rdeps: dict[str, set[str]] = defaultdict(set)
        self.edges: list[Edge] = []

    @property
    def nodes(self) -> list[str]:
        return sorted(self._nodes)

    def add_node(self, address: str) -> None:
        self._nodes.add(address)

    def add_edge(
        self, source: str, target: str, kind: str = REFERENCE, attribute: str = ""
    ) -> None:
        for address in (source, target):
            if address not in self._nodes:
                raise UnknownReferenceError(source, target)
        if any(e.source == source and e.target == target and e.kind == kind for e in self.edges):
            return
        self._deps[source].add(target)
        self._rdeps[target].add(source)
        self.edges.append(Edge(source, target, kind, attribute))

    def dependencies(self, address: str) -> list[str]:
        return sorted(self._deps.get(address, ()))

    def dependents(self, address: str) -> list[str]:
        return sorted(self._rdeps.get(address, ()))

    def apply_waves(self) -> list[list[str]]:
        """Group resources into batches that can be applied concurrently.

        Every resource in a batch depends only on resources in earlier
        batches. Batches are sorted so the result is deterministic.
        """
        sorter = TopologicalSorter({node: self._deps.get(node, set()) for node in self._nodes})
        try:
            sorter.prepare()
        except CycleError as e:
            raise DependencyCycleError(list(e.args[1])) from e

        waves = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            waves.append(ready)
            sorter.done(*ready)
        return waves

    def apply_order(self) -> list[str]:
        return [address for wave in self.apply_waves() for address in wave]

    def destroy_order(self) -> list[str]:
        return list(reversed(self.apply_order()))


def build_graph(topology: Topology) -> DependencyGraph:
    """Build the dependency graph implied by a topology declaration."""
    graph = DependencyGraph()
    graph.add_node(NETWORK)

    for subnet in topology.subnets:
        address = subnet_address(subnet.key)
        graph.add_node(address)
        graph.add_edge(address, NETWORK, attribute="network")

    graph.add_node(ROUTER)
    graph.add_edge(ROUTER, NETWORK, attribute="network")

    graph.add_node(NAT)
    graph.add_edge(NAT, ROUTER, attribute="router")
    for key in topology.nat.subnet_keys:
        graph.add_edge(NAT, subnet_address(key), attribute="subnetworks")
        graph.add_edge(NAT, subnet_address(key), kind=DEPENDS_ON)

    for rule in topology.firewall_rules:
        address = firewall_address(rule.name)
        graph.add_node(address)
        graph.add_edge(address, NETWORK, attribute="network")

    logger.debug("dependency_graph_built", nodes=len(graph.nodes), edges=len(graph.edges))
    return graph
