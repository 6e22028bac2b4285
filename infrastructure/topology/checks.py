"""Policy checks over a topology declaration.

Each check returns a list of violations; an empty list means the check
passed. `ensure_valid` runs everything and raises if anything failed.
"""

import ipaddress
from dataclasses import dataclass
from itertools import combinations

import structlog

from . import defaults
from .errors import TopologyValidationError
from .models import Action, Direction, FirewallDecl, Topology

logger = structlog.get_logger()

SSH_PORT = 22


@dataclass(frozen=True)
class Violation:
    check: str
    resource: str
    message: str

    def __str__(self) -> str:
        return f"[{self.check}] {self.resource}: {self.message}"


def _net(cidr: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    return ipaddress.ip_network(cidr)


def _ranges_overlap(a: list[str], b: list[str]) -> bool:
    return any(
        x.version == y.version and x.overlaps(y) for x in map(_net, a) for y in map(_net, b)
    )


def _is_anywhere(cidr: str) -> bool:
    return _net(cidr).prefixlen == 0


def _grants_port(rule: FirewallDecl, protocol: str, port: int) -> bool:
    for matcher in rule.matchers:
        if matcher.protocol not in ("all", protocol):
            continue
        if not matcher.ports or any(low <= port <= high for low, high in matcher.port_ranges()):
            return True
    return False


def is_deny_all(rule: FirewallDecl) -> bool:
    """A rule that denies every protocol from everywhere to every instance."""
    return (
        rule.action == Action.DENY
        and not rule.target_tags
        and any(m.protocol == "all" for m in rule.matchers)
        and any(_is_anywhere(r) for r in rule.source_ranges)
    )


def _could_match_same_traffic(a: FirewallDecl, b: FirewallDecl) -> bool:
    if a.target_tags and b.target_tags and not set(a.target_tags) & set(b.target_tags):
        return False
    sources = _ranges_overlap(a.source_ranges, b.source_ranges) or bool(
        set(a.source_tags) & set(b.source_tags)
    )
    if not sources:
        return False
    for ma in a.matchers:
        for mb in b.matchers:
            if "all" not in (ma.protocol, mb.protocol) and ma.protocol != mb.protocol:
                continue
            if not ma.ports or not mb.ports:
                return True
            if any(
                la <= hb and lb <= ha
                for la, ha in ma.port_ranges()
                for lb, hb in mb.port_ranges()
            ):
                return True
    return False


def check_cidr_overlap(topology: Topology) -> list[Violation]:
    """Primary and secondary ranges must be pairwise disjoint across subnets."""
    ranges = []
    for subnet in topology.subnets:
        ranges.append((f"subnet.{subnet.key}", subnet.ip_cidr_range))
        for secondary in subnet.secondary_ranges:
            ranges.append(
                (f"subnet.{subnet.key}/{secondary.range_name}", secondary.ip_cidr_range)
            )

    violations = []
    for (name_a, cidr_a), (name_b, cidr_b) in combinations(ranges, 2):
        if _ranges_overlap([cidr_a], [cidr_b]):
            violations.append(
                Violation(
                    "cidr-overlap",
                    name_a,
                    f"{cidr_a} overlaps {cidr_b} of {name_b}",
                )
            )
    return violations


def check_subnets_in_vpc(topology: Topology) -> list[Violation]:
    """Primary ranges sit inside the VPC block, secondary ranges outside it."""
    vpc = _net(topology.vpc_cidr)
    violations = []
    for subnet in topology.subnets:
        primary = _net(subnet.ip_cidr_range)
        if primary.version != vpc.version or not primary.subnet_of(vpc):  # type: ignore[arg-type]
            violations.append(
                Violation(
                    "subnet-in-vpc",
                    f"subnet.{subnet.key}",
                    f"{subnet.ip_cidr_range} is outside VPC range {topology.vpc_cidr}",
                )
            )
        for secondary in subnet.secondary_ranges:
            if _ranges_overlap([secondary.ip_cidr_range], [topology.vpc_cidr]):
                violations.append(
                    Violation(
                        "subnet-in-vpc",
                        f"subnet.{subnet.key}/{secondary.range_name}",
                        f"secondary range {secondary.ip_cidr_range} overlaps VPC range",
                    )
                )
    return violations


def check_nat_coverage(topology: Topology) -> list[Violation]:
    """NAT serves exactly the private and data subnets, never the public one."""
    keys = topology.nat.subnet_keys
    declared = {s.key for s in topology.subnets}
    violations = []

    for key in keys:
        if key not in declared:
            violations.append(
                Violation("nat-coverage", "nat", f"references undeclared subnet {key!r}")
            )
    if len(keys) != len(set(keys)):
        violations.append(Violation("nat-coverage", "nat", "lists a subnet more than once"))
    if "public" in keys:
        violations.append(Violation("nat-coverage", "nat", "public subnet must not be NATed"))

    expected = set(defaults.NAT_SUBNETS)
    if set(keys) != expected:
        violations.append(
            Violation(
                "nat-coverage",
                "nat",
                f"serves {sorted(set(keys))}, expected {sorted(expected)}",
            )
        )
    return violations


def check_firewall_priorities(topology: Topology) -> list[Violation]:
    """The default deny sits at the bottom and no ALLOW/DENY pair ties."""
    ingress = [r for r in topology.firewall_rules if r.direction == Direction.INGRESS]
    violations = []

    backstops = [r for r in ingress if is_deny_all(r)]
    if not backstops:
        violations.append(
            Violation("firewall-priority", "firewall", "no deny-all ingress rule declared")
        )

    for backstop in backstops:
        for rule in ingress:
            if rule is backstop:
                continue
            if rule.priority > backstop.priority or (
                rule.priority == backstop.priority and rule.action == Action.ALLOW
            ):
                violations.append(
                    Violation(
                        "firewall-priority",
                        f"firewall.{rule.name}",
                        f"priority {rule.priority} is shadowed by or below "
                        f"deny-all rule {backstop.name} ({backstop.priority})",
                    )
                )

    for a, b in combinations(ingress, 2):
        if a.priority != b.priority or a.action == b.action:
            continue
        if _could_match_same_traffic(a, b):
            violations.append(
                Violation(
                    "firewall-priority",
                    f"firewall.{a.name}",
                    f"shares priority {a.priority} with conflicting rule {b.name}",
                )
            )
    return violations


def check_ssh_exposure(topology: Topology) -> list[Violation]:
    """Only bastion hosts accept SSH from the internet."""
    violations = []
    bastion_rules = []
    for rule in topology.firewall_rules:
        if rule.direction != Direction.INGRESS or rule.action != Action.ALLOW:
            continue
        if not any(_is_anywhere(r) for r in rule.source_ranges):
            continue
        if not _grants_port(rule, "tcp", SSH_PORT):
            continue
        if rule.target_tags == [defaults.BASTION_TAG]:
            bastion_rules.append(rule)
            continue
        violations.append(
            Violation(
                "ssh-exposure",
                f"firewall.{rule.name}",
                f"grants tcp/22 from anywhere to {rule.target_tags or 'all instances'}",
            )
        )

    if not bastion_rules:
        violations.append(
            Violation(
                "ssh-exposure",
                "firewall",
                f"no rule allows tcp/22 from anywhere to {defaults.BASTION_TAG!r} instances",
            )
        )
    return violations


def check_literals(topology: Topology) -> list[Violation]:
    """Values other systems rely on keep their declared literals."""
    violations = []

    if topology.vpc_cidr != defaults.VPC_CIDR:
        violations.append(
            Violation("literals", "network", f"VPC range is {topology.vpc_cidr}")
        )
    for key, cidr in defaults.SUBNET_CIDRS.items():
        try:
            subnet = topology.subnet(key)
        except KeyError:
            violations.append(Violation("literals", f"subnet.{key}", "subnet is missing"))
            continue
        if subnet.ip_cidr_range != cidr:
            violations.append(
                Violation("literals", f"subnet.{key}", f"range is {subnet.ip_cidr_range}")
            )

    try:
        private = topology.subnet("private")
    except KeyError:
        private = None
    if private is not None:
        declared = {r.range_name: r.ip_cidr_range for r in private.secondary_ranges}
        for range_name, cidr in defaults.PRIVATE_SECONDARY_RANGES.items():
            if declared.get(range_name) != cidr:
                violations.append(
                    Violation(
                        "literals",
                        f"subnet.private/{range_name}",
                        f"secondary range is {declared.get(range_name)}, expected {cidr}",
                    )
                )

    if topology.nat.nat_ip_allocate_option != "AUTO_ONLY":
        violations.append(
            Violation(
                "literals",
                "nat",
                f"IP allocation is {topology.nat.nat_ip_allocate_option}, expected AUTO_ONLY",
            )
        )

    health = set(defaults.HEALTH_CHECK_RANGES)
    if not any(
        r.action == Action.ALLOW and set(r.source_ranges) == health
        for r in topology.firewall_rules
    ):
        violations.append(
            Violation("literals", "firewall", "no rule allows load balancer health checks")
        )

    for rule in topology.firewall_rules:
        if is_deny_all(rule) and rule.priority != defaults.DENY_ALL_PRIORITY:
            violations.append(
                Violation(
                    "literals",
                    f"firewall.{rule.name}",
                    f"deny-all priority is {rule.priority}, "
                    f"expected {defaults.DENY_ALL_PRIORITY}",
                )
            )
    return violations


CHECKS = (
    check_cidr_overlap,
    check_subnets_in_vpc,
    check_nat_coverage,
    check_firewall_priorities,
    check_ssh_exposure,
    check_literals,
)


def validate_topology(topology: Topology) -> list[Violation]:
    """Run every policy check and collect the violations."""
    violations = []
    for check in CHECKS:
        found = check(topology)
        if found:
            logger.warning("policy_check_failed", check=check.__name__, violations=len(found))
        violations.extend(found)
    return violations


def ensure_valid(topology: Topology) -> None:
    violations = validate_topology(topology)
    if violations:
        raise TopologyValidationError(violations)
    logger.info("topology_valid", network=topology.network.name, checks=len(CHECKS))
