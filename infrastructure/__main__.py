"""GCP Network Foundation - Main Entry Point.

This deploys the shared network for one environment:
- Custom-mode VPC (10.0.0.0/16)
- Public, private and data subnets with flow logs
- Cloud Router + Cloud NAT for the private and data subnets
- Ingress firewall rules with a default deny at priority 65534

The declaration is checked against the network policy before any resource
is registered.
"""

import pulumi

from stacks import firewall, network
from topology import TopologyValidationError, build_graph, build_topology, ensure_valid

# Configuration
config = pulumi.Config()
gcp_config = pulumi.Config("gcp")
project_id = gcp_config.require("project")
region = gcp_config.get("region") or "us-central1"
env = config.get("env") or pulumi.get_stack()
name_prefix = config.get("name_prefix") or "core"
mtu = config.get_int("mtu") or 1460

pulumi.log.info(f"Deploying network foundation to {project_id} ({env}, {region})")

# ============================================
# 1. Declaration + policy checks
# ============================================
topology = build_topology(region=region, env=env, prefix=name_prefix, mtu=mtu)

try:
    ensure_valid(topology)
except TopologyValidationError as e:
    for violation in e.violations:
        pulumi.log.error(str(violation))
    raise pulumi.RunError(f"Network declaration failed policy checks: {e}") from e

graph = build_graph(topology)
for wave, addresses in enumerate(graph.apply_waves(), start=1):
    pulumi.log.info(f"Apply wave {wave}: {', '.join(addresses)}")

# ============================================
# 2. Network, subnets, router, NAT
# ============================================
pulumi.log.info("Creating network...")
vpc = network.create_vpc(project_id, topology)

# ============================================
# 3. Firewall rules
# ============================================
pulumi.log.info("Creating firewall rules...")
rules = firewall.create_firewall_rules(project_id, topology, vpc["network"])

# ============================================
# Outputs
# ============================================
pulumi.export("project_id", project_id)
pulumi.export("region", region)
pulumi.export("environment", env)

# Network
pulumi.export("network_id", vpc["network"].id)
pulumi.export("network_name", vpc["network"].name)
pulumi.export("network_self_link", vpc["network"].self_link)

# Subnets
pulumi.export("subnet_ids", {key: subnet.id for key, subnet in vpc["subnets"].items()})
pulumi.export("subnet_cidrs", {s.key: s.ip_cidr_range for s in topology.subnets})
pulumi.export(
    "secondary_ranges",
    {
        s.key: {r.range_name: r.ip_cidr_range for r in s.secondary_ranges}
        for s in topology.subnets
        if s.secondary_ranges
    },
)

# Router + NAT
pulumi.export("router_name", vpc["router"].name)
pulumi.export("nat_name", vpc["nat"].name)

# Firewall
pulumi.export("firewall_rules", sorted(rules))

pulumi.log.info("Network deployment complete!")
