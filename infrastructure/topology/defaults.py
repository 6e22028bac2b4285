"""The declared network for one environment.

Three-tier layout inside 10.0.0.0/16:
- public  10.0.1.0/24 (load balancers, bastion; no NAT)
- private 10.0.2.0/24 (workloads; pods and services secondary ranges)
- data    10.0.3.0/24 (databases and caches)

Private and data subnets reach the internet only through Cloud NAT.
"""

from .models import (
    Action,
    FirewallDecl,
    FlowLogConfig,
    NatDecl,
    NatSubnet,
    NetworkDecl,
    ProtocolMatcher,
    RouterDecl,
    SecondaryRange,
    SubnetDecl,
    Topology,
)

VPC_CIDR = "10.0.0.0/16"

SUBNET_CIDRS = {
    "public": "10.0.1.0/24",
    "private": "10.0.2.0/24",
    "data": "10.0.3.0/24",
}

POD_RANGE = "10.1.0.0/16"
SERVICE_RANGE = "10.2.0.0/16"

PRIVATE_SECONDARY_RANGES = {"pods": POD_RANGE, "services": SERVICE_RANGE}

# Google Cloud load balancer health check origins
HEALTH_CHECK_RANGES = ["130.211.0.0/22", "35.191.0.0/16"]

NAT_SUBNETS = ["private", "data"]

DENY_ALL_PRIORITY = 65534
BASTION_TAG = "bastion"
ANYWHERE = "0.0.0.0/0"


def _flow_logs() -> FlowLogConfig:
    """50% of flows, aggregated every 10 minutes, with full metadata."""
    return FlowLogConfig(
        aggregation_interval="INTERVAL_10_MIN",
        flow_sampling=0.5,
        metadata="INCLUDE_ALL_METADATA",
    )


def build_topology(region: str, env: str, prefix: str = "core", mtu: int = 1460) -> Topology:
    """Build the network declaration for an environment."""
    network = NetworkDecl(
        name=f"{prefix}-vpc-{env}",
        auto_create_subnetworks=False,
        mtu=mtu,
        description=f"Main VPC network ({env})",
    )

    subnets = [
        SubnetDecl(
            key="public",
            name=f"{prefix}-public-{env}",
            ip_cidr_range=SUBNET_CIDRS["public"],
            region=region,
            private_ip_google_access=True,
            flow_logs=_flow_logs(),
            description="Public subnet for load balancers and bastion hosts",
        ),
        SubnetDecl(
            key="private",
            name=f"{prefix}-private-{env}",
            ip_cidr_range=SUBNET_CIDRS["private"],
            region=region,
            private_ip_google_access=True,
            # Secondary ranges for GKE pods and services
            secondary_ranges=[
                SecondaryRange(range_name=name, ip_cidr_range=cidr)
                for name, cidr in PRIVATE_SECONDARY_RANGES.items()
            ],
            flow_logs=_flow_logs(),
            description="Private subnet for application workloads",
        ),
        SubnetDecl(
            key="data",
            name=f"{prefix}-data-{env}",
            ip_cidr_range=SUBNET_CIDRS["data"],
            region=region,
            private_ip_google_access=True,
            flow_logs=_flow_logs(),
            description="Data subnet for databases and caches",
        ),
    ]

    router = RouterDecl(name=f"{prefix}-router-{env}", region=region)

    nat = NatDecl(
        name=f"{prefix}-nat-{env}",
        nat_ip_allocate_option="AUTO_ONLY",
        subnetworks=[NatSubnet(subnet=key) for key in NAT_SUBNETS],
        log_errors_only=True,
    )

    firewall_rules = [
        FirewallDecl(
            name=f"{prefix}-allow-internal-{env}",
            action=Action.ALLOW,
            matchers=[
                ProtocolMatcher(protocol="tcp", ports=["0-65535"]),
                ProtocolMatcher(protocol="udp", ports=["0-65535"]),
                ProtocolMatcher(protocol="icmp"),
            ],
            source_ranges=[VPC_CIDR, POD_RANGE, SERVICE_RANGE],
            description="Allow all internal traffic within the VPC",
        ),
        FirewallDecl(
            name=f"{prefix}-allow-health-checks-{env}",
            action=Action.ALLOW,
            matchers=[ProtocolMatcher(protocol="tcp")],
            source_ranges=list(HEALTH_CHECK_RANGES),
            description="Allow Google Cloud load balancer health checks",
        ),
        FirewallDecl(
            name=f"{prefix}-allow-ssh-bastion-{env}",
            action=Action.ALLOW,
            matchers=[ProtocolMatcher(protocol="tcp", ports=["22"])],
            source_ranges=[ANYWHERE],
            target_tags=[BASTION_TAG],
            description="Allow SSH to bastion hosts",
        ),
        FirewallDecl(
            name=f"{prefix}-deny-all-ingress-{env}",
            action=Action.DENY,
            matchers=[ProtocolMatcher(protocol="all")],
            source_ranges=[ANYWHERE],
            priority=DENY_ALL_PRIORITY,
            description="Deny all other ingress traffic",
        ),
    ]

    return Topology(
        vpc_cidr=VPC_CIDR,
        network=network,
        subnets=subnets,
        router=router,
        nat=nat,
        firewall_rules=firewall_rules,
    )
