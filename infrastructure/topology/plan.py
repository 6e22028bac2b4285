"""Diff two declarations into the changes a reconcile would perform.

This only compares declarations. It answers "what does re-declaring the
network imply": which resources are created, updated in place, replaced or
deleted. Attributes that force replacement follow the GCP provider.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from .graph import (
    NAT,
    NETWORK,
    REFERENCE,
    ROUTER,
    DependencyGraph,
    build_graph,
    firewall_address,
    subnet_address,
)
from .models import Topology

logger = structlog.get_logger()


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"


# Attributes that cannot be changed on a live resource. References to other
# resources are included: a new id in one of these means a new resource.
FORCE_NEW: dict[str, frozenset[str]] = {
    "network": frozenset({"name", "auto_create_subnetworks", "mtu", "description"}),
    "subnet": frozenset({"name", "region", "network"}),
    "router": frozenset({"name", "region", "network"}),
    "nat": frozenset({"name", "router"}),
    "firewall": frozenset({"name", "direction", "network"}),
}


@dataclass(frozen=True)
class PlannedChange:
    address: str
    action: ChangeAction
    fields: tuple[str, ...] = ()

    def __str__(self) -> str:
        suffix = f" ({', '.join(self.fields)})" if self.fields else ""
        return f"{self.action.value} {self.address}{suffix}"


def _kind(address: str) -> str:
    return address.split(".", 1)[0]


def snapshot(topology: Topology) -> dict[str, dict[str, Any]]:
    """Flatten a topology into address -> declared attributes."""
    resources = {
        NETWORK: topology.network.model_dump(mode="json"),
        ROUTER: topology.router.model_dump(mode="json"),
        NAT: topology.nat.model_dump(mode="json"),
    }
    for subnet in topology.subnets:
        resources[subnet_address(subnet.key)] = subnet.model_dump(mode="json", exclude={"key"})
    for rule in topology.firewall_rules:
        resources[firewall_address(rule.name)] = rule.model_dump(mode="json")
    return resources


def _changed_fields(old: dict[str, Any], new: dict[str, Any]) -> tuple[str, ...]:
    return tuple(sorted(k for k in old.keys() | new.keys() if old.get(k) != new.get(k)))


def _cascade_replacements(
    graph: DependencyGraph, replaced: set[str]
) -> tuple[set[str], dict[str, set[str]]]:
    """Follow references out of replaced resources.

    A resource holding the reference in a replace-only attribute is replaced
    too; otherwise that attribute is updated in place with the new id.
    Returns the replaced addresses and the reference updates per address.
    """
    pending = list(replaced)
    result = set(replaced)
    updates: dict[str, set[str]] = defaultdict(set)
    while pending:
        address = pending.pop()
        for edge in graph.edges:
            if edge.target != address or edge.kind != REFERENCE:
                continue
            if edge.attribute in FORCE_NEW[_kind(edge.source)]:
                if edge.source not in result:
                    result.add(edge.source)
                    pending.append(edge.source)
            else:
                updates[edge.source].add(edge.attribute)
    return result, updates


def plan_changes(current: Topology, desired: Topology) -> list[PlannedChange]:
    """Compute the changes that turn `current` into `desired`.

    An identical declaration yields an empty plan.
    """
    old = snapshot(current)
    new = snapshot(desired)
    desired_graph = build_graph(desired)

    actions: dict[str, PlannedChange] = {}
    replaced: set[str] = set()
    for address in new.keys() & old.keys():
        fields = _changed_fields(old[address], new[address])
        if not fields:
            continue
        if set(fields) & FORCE_NEW[_kind(address)]:
            replaced.add(address)
        actions[address] = PlannedChange(address, ChangeAction.UPDATE, fields)

    replaced, reference_updates = _cascade_replacements(desired_graph, replaced)
    for address, attributes in reference_updates.items():
        if address in replaced or address not in old:
            continue
        fields = set(actions[address].fields) if address in actions else set()
        actions[address] = PlannedChange(
            address, ChangeAction.UPDATE, tuple(sorted(fields | attributes))
        )

    for address in replaced:
        if address not in old:
            continue
        fields = actions[address].fields if address in actions else ()
        actions[address] = PlannedChange(address, ChangeAction.REPLACE, fields)

    for address in new.keys() - old.keys():
        actions[address] = PlannedChange(address, ChangeAction.CREATE)

    changes = [actions[a] for a in desired_graph.apply_order() if a in actions]
    for address in build_graph(current).destroy_order():
        if address not in new:
            changes.append(PlannedChange(address, ChangeAction.DELETE))

    logger.info(
        "plan_computed",
        network=desired.network.name,
        changes=len(changes),
        replacements=sum(c.action == ChangeAction.REPLACE for c in changes),
    )
    return changes
