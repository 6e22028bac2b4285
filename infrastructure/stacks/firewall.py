"""VPC firewall rules.

Ingress only. Lower priority numbers take precedence; the deny-all rule at
65534 is the backstop for anything not explicitly allowed.
"""

from typing import Any

import pulumi_gcp as gcp

from topology.models import Action, FirewallDecl, Topology


def _allows(rule: FirewallDecl) -> list[gcp.compute.FirewallAllowArgs]:
    return [
        gcp.compute.FirewallAllowArgs(protocol=m.protocol, ports=m.ports or None)
        for m in rule.matchers
    ]


def _denies(rule: FirewallDecl) -> list[gcp.compute.FirewallDenyArgs]:
    return [
        gcp.compute.FirewallDenyArgs(protocol=m.protocol, ports=m.ports or None)
        for m in rule.matchers
    ]


def create_firewall_rules(project_id: str, topology: Topology, network: Any) -> dict[str, Any]:
    """Create one firewall resource per declared rule."""
    rules: dict[str, Any] = {}
    for decl in topology.firewall_rules:
        is_allow = decl.action == Action.ALLOW
        rules[decl.name] = gcp.compute.Firewall(
            decl.name,
            name=decl.name,
            project=project_id,
            network=network.id,
            direction=decl.direction.value,
            priority=decl.priority,
            allows=_allows(decl) if is_allow else None,
            denies=None if is_allow else _denies(decl),
            source_ranges=decl.source_ranges or None,
            source_tags=decl.source_tags or None,
            target_tags=decl.target_tags or None,
            description=decl.description,
        )
    return rules
