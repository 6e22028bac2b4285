"""Tests for the resource dependency graph."""

import os
import sys

import pytest

# Add the infrastructure directory to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from topology import DependencyCycleError, DependencyGraph, Topology, UnknownReferenceError
from topology.graph import DEPENDS_ON, REFERENCE, build_graph


class TestBuildGraph:
    """Test the edges implied by the declaration."""

    def test_nodes(self, topology: Topology, env: str) -> None:
        graph = build_graph(topology)
        assert graph.nodes == sorted(
            [
                "network",
                "subnet.public",
                "subnet.private",
                "subnet.data",
                "router",
                "nat",
                f"firewall.core-allow-internal-{env}",
                f"firewall.core-allow-health-checks-{env}",
                f"firewall.core-allow-ssh-bastion-{env}",
                f"firewall.core-deny-all-ingress-{env}",
            ]
        )

    def test_everything_hangs_off_the_network(self, topology: Topology) -> None:
        graph = build_graph(topology)
        for address in graph.nodes:
            if address in ("network", "nat"):
                continue
            assert graph.dependencies(address) == ["network"]

    def test_nat_dependencies(self, topology: Topology) -> None:
        graph = build_graph(topology)
        assert graph.dependencies("nat") == ["router", "subnet.data", "subnet.private"]
        edges = {(e.target, e.kind, e.attribute) for e in graph.edges if e.source == "nat"}
        assert edges == {
            ("router", REFERENCE, "router"),
            ("subnet.private", REFERENCE, "subnetworks"),
            ("subnet.private", DEPENDS_ON, ""),
            ("subnet.data", REFERENCE, "subnetworks"),
            ("subnet.data", DEPENDS_ON, ""),
        }

    def test_reference_and_hint_are_both_kept(self) -> None:
        graph = DependencyGraph()
        graph.add_node("nat")
        graph.add_node("subnet.private")
        graph.add_edge("nat", "subnet.private", attribute="subnetworks")
        graph.add_edge("nat", "subnet.private", kind=DEPENDS_ON)
        assert [e.kind for e in graph.edges] == [REFERENCE, DEPENDS_ON]
        assert graph.dependencies("nat") == ["subnet.private"]

    def test_public_subnet_has_no_nat_dependent(self, topology: Topology) -> None:
        graph = build_graph(topology)
        assert graph.dependents("subnet.public") == []
        assert graph.dependents("subnet.private") == ["nat"]


class TestOrdering:
    """Test apply and destroy orders."""

    def test_apply_order_is_topological(self, topology: Topology) -> None:
        graph = build_graph(topology)
        order = graph.apply_order()
        assert len(order) == len(graph.nodes)
        position = {address: i for i, address in enumerate(order)}
        for edge in graph.edges:
            assert position[edge.target] < position[edge.source]

    def test_waves(self, topology: Topology) -> None:
        graph = build_graph(topology)
        waves = graph.apply_waves()
        assert waves[0] == ["network"]
        assert waves[1] == [a for a in graph.nodes if a not in ("network", "nat")]
        assert waves[2] == ["nat"]
        assert len(waves) == 3

    def test_order_is_deterministic(self, topology: Topology) -> None:
        assert build_graph(topology).apply_order() == build_graph(topology).apply_order()

    def test_destroy_order_is_reverse(self, topology: Topology) -> None:
        graph = build_graph(topology)
        assert graph.destroy_order() == list(reversed(graph.apply_order()))
        assert graph.destroy_order()[0] == "nat"
        assert graph.destroy_order()[-1] == "network"


class TestGraphErrors:
    def test_unknown_reference(self) -> None:
        graph = DependencyGraph()
        graph.add_node("nat")
        with pytest.raises(UnknownReferenceError) as exc_info:
            graph.add_edge("nat", "subnet.dmz")
        assert exc_info.value.target == "subnet.dmz"

    def test_cycle(self) -> None:
        graph = DependencyGraph()
        graph.add_node("a")
        graph.add_node("b")
        graph.add_edge("a", "b")
        graph.add_edge("b", "a")
        with pytest.raises(DependencyCycleError) as exc_info:
            graph.apply_order()
        assert set(exc_info.value.nodes) == {"a", "b"}

    def test_duplicate_edge_is_ignored(self) -> None:
        graph = DependencyGraph()
        graph.add_node("a")
        graph.add_node("b")
        graph.add_edge("a", "b")
        graph.add_edge("a", "b")
        assert len(graph.edges) == 1
