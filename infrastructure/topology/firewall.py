"""Ingress firewall evaluation.

Rules are evaluated lowest priority number first and the first match wins.
At equal priority a DENY rule is evaluated before an ALLOW rule. Traffic
matched by no rule falls through to the implied deny-ingress rule.
"""

import ipaddress
from dataclasses import dataclass, field

from .models import Action, Direction, FirewallDecl, ProtocolMatcher


@dataclass(frozen=True)
class Connection:
    """An inbound connection attempt to an instance."""

    source_ip: str
    protocol: str
    port: int | None = None
    target_tags: frozenset[str] = field(default_factory=frozenset)
    source_tags: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    rule: FirewallDecl | None = None

    @property
    def rule_name(self) -> str:
        return self.rule.name if self.rule else "implied-deny-ingress"


def _matches_protocol(matcher: ProtocolMatcher, conn: Connection) -> bool:
    if matcher.protocol not in ("all", conn.protocol.lower()):
        return False
    if not matcher.ports:
        return True
    if conn.port is None:
        return False
    return any(low <= conn.port <= high for low, high in matcher.port_ranges())


def _matches_source(rule: FirewallDecl, conn: Connection) -> bool:
    address = ipaddress.ip_address(conn.source_ip)
    if any(
        address.version == net.version and address in net
        for net in map(ipaddress.ip_network, rule.source_ranges)
    ):
        return True
    return bool(set(rule.source_tags) & conn.source_tags)


def rule_matches(rule: FirewallDecl, conn: Connection) -> bool:
    """Return True if the rule applies to the connection."""
    if rule.target_tags and not set(rule.target_tags) & conn.target_tags:
        return False
    if not _matches_source(rule, conn):
        return False
    return any(_matches_protocol(m, conn) for m in rule.matchers)


def evaluation_order(rules: list[FirewallDecl]) -> list[FirewallDecl]:
    """Ingress rules in the order they are evaluated."""
    ingress = [r for r in rules if r.direction == Direction.INGRESS]
    return sorted(ingress, key=lambda r: (r.priority, r.action != Action.DENY, r.name))


def evaluate(rules: list[FirewallDecl], conn: Connection) -> Verdict:
    for rule in evaluation_order(rules):
        if rule_matches(rule, conn):
            return Verdict(allowed=rule.action == Action.ALLOW, rule=rule)
    return Verdict(allowed=False)
