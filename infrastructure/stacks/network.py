"""VPC Network configuration.

Creates the custom-mode VPC with public, private and data subnets, plus a
Cloud Router and Cloud NAT for the private and data subnets.
"""

from typing import Any

import pulumi
import pulumi_gcp as gcp

from topology.models import SubnetDecl, Topology


def _subnet_log_config(subnet: SubnetDecl) -> gcp.compute.SubnetworkLogConfigArgs | None:
    if subnet.flow_logs is None:
        return None
    return gcp.compute.SubnetworkLogConfigArgs(
        aggregation_interval=subnet.flow_logs.aggregation_interval,
        flow_sampling=subnet.flow_logs.flow_sampling,
        metadata=subnet.flow_logs.metadata,
    )


def create_vpc(project_id: str, topology: Topology) -> dict[str, Any]:
    """Create VPC network, subnets, router and NAT."""
    # VPC Network
    network = gcp.compute.Network(
        topology.network.name,
        name=topology.network.name,
        project=project_id,
        auto_create_subnetworks=topology.network.auto_create_subnetworks,
        mtu=topology.network.mtu,
        description=topology.network.description,
    )

    subnets: dict[str, Any] = {}
    for decl in topology.subnets:
        subnets[decl.key] = gcp.compute.Subnetwork(
            decl.name,
            name=decl.name,
            project=project_id,
            network=network.id,
            ip_cidr_range=decl.ip_cidr_range,
            region=decl.region,
            private_ip_google_access=decl.private_ip_google_access,
            description=decl.description,
            secondary_ip_ranges=[
                gcp.compute.SubnetworkSecondaryIpRangeArgs(
                    range_name=r.range_name,
                    ip_cidr_range=r.ip_cidr_range,
                )
                for r in decl.secondary_ranges
            ],
            # Flow logs for security auditing
            log_config=_subnet_log_config(decl),
        )

    # Cloud Router (for NAT)
    router = gcp.compute.Router(
        topology.router.name,
        name=topology.router.name,
        project=project_id,
        network=network.id,
        region=topology.router.region,
    )

    # Cloud NAT only for the subnets listed in the declaration
    nat_subnets = [subnets[s.subnet] for s in topology.nat.subnetworks]
    nat = gcp.compute.RouterNat(
        topology.nat.name,
        name=topology.nat.name,
        project=project_id,
        router=router.name,
        region=topology.router.region,
        nat_ip_allocate_option=topology.nat.nat_ip_allocate_option,
        source_subnetwork_ip_ranges_to_nat="LIST_OF_SUBNETWORKS",
        subnetworks=[
            gcp.compute.RouterNatSubnetworkArgs(
                name=subnets[s.subnet].id,
                source_ip_ranges_to_nats=s.source_ip_ranges_to_nat,
            )
            for s in topology.nat.subnetworks
        ],
        log_config=gcp.compute.RouterNatLogConfigArgs(
            enable=True,
            filter="ERRORS_ONLY" if topology.nat.log_errors_only else "ALL",
        ),
        opts=pulumi.ResourceOptions(depends_on=nat_subnets),
    )

    return {
        "network": network,
        "subnets": subnets,
        "router": router,
        "nat": nat,
    }
