"""Declaration models for the VPC topology.

Every resource is a record of static attributes. Nothing here talks to GCP;
the models are turned into provider resources by the stacks package.
"""

import ipaddress
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_PRIORITY = 1000
MAX_PRIORITY = 65535

PORTED_PROTOCOLS = {"tcp", "udp", "sctp"}


def _check_cidr(value: str) -> str:
    try:
        ipaddress.ip_network(value)
    except ValueError as e:
        raise ValueError(f"invalid CIDR block {value!r}: {e}") from e
    return value


def parse_port_spec(spec: str) -> tuple[int, int]:
    """Parse "22" or "8000-8080" into an inclusive (low, high) pair."""
    low_text, sep, high_text = spec.partition("-")
    try:
        low = int(low_text)
        high = int(high_text) if sep else low
    except ValueError as e:
        raise ValueError(f"invalid port spec {spec!r}") from e
    if not 0 <= low <= high <= 65535:
        raise ValueError(f"invalid port spec {spec!r}")
    return low, high


class Direction(str, Enum):
    """Traffic direction a firewall rule applies to."""

    INGRESS = "INGRESS"


class Action(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class NetworkDecl(BaseModel):
    """The single custom-mode VPC."""

    name: str
    auto_create_subnetworks: bool = False
    mtu: int = Field(default=1460, ge=1300, le=8896)
    description: str = ""

    @field_validator("auto_create_subnetworks")
    @classmethod
    def custom_mode_only(cls, value: bool) -> bool:
        if value:
            raise ValueError("auto subnet creation must stay disabled")
        return value


class SecondaryRange(BaseModel):
    range_name: str
    ip_cidr_range: str

    @field_validator("ip_cidr_range")
    @classmethod
    def valid_cidr(cls, value: str) -> str:
        return _check_cidr(value)


class FlowLogConfig(BaseModel):
    """Subnet flow log sampling, kept for security auditing."""

    aggregation_interval: str = "INTERVAL_10_MIN"
    flow_sampling: float = Field(default=0.5, gt=0.0, le=1.0)
    metadata: str = "INCLUDE_ALL_METADATA"


class SubnetDecl(BaseModel):
    """A regional subnet of the VPC."""

    key: str = Field(description="Role of the subnet: public, private or data")
    name: str
    ip_cidr_range: str
    region: str
    private_ip_google_access: bool = True
    secondary_ranges: list[SecondaryRange] = Field(default_factory=list)
    flow_logs: FlowLogConfig | None = None
    description: str = ""

    @field_validator("ip_cidr_range")
    @classmethod
    def valid_cidr(cls, value: str) -> str:
        return _check_cidr(value)

    @model_validator(mode="after")
    def unique_range_names(self) -> "SubnetDecl":
        names = [r.range_name for r in self.secondary_ranges]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate secondary range names in subnet {self.key}")
        return self


class RouterDecl(BaseModel):
    """Cloud Router, used only as the attachment point for NAT."""

    name: str
    region: str


class NatSubnet(BaseModel):
    subnet: str = Field(description="Key of the subnet to translate")
    source_ip_ranges_to_nat: list[str] = Field(default_factory=lambda: ["ALL_IP_RANGES"])


class NatDecl(BaseModel):
    """Cloud NAT gateway on the router."""

    name: str
    nat_ip_allocate_option: str = "AUTO_ONLY"
    subnetworks: list[NatSubnet] = Field(default_factory=list)
    log_errors_only: bool = True

    @property
    def subnet_keys(self) -> list[str]:
        return [s.subnet for s in self.subnetworks]


class ProtocolMatcher(BaseModel):
    """Protocol and optional port list matched by a firewall rule."""

    protocol: str
    ports: list[str] = Field(default_factory=list)

    @field_validator("protocol")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def ports_need_protocol(self) -> "ProtocolMatcher":
        if self.ports and self.protocol not in PORTED_PROTOCOLS:
            raise ValueError(f"ports are not allowed for protocol {self.protocol}")
        for spec in self.ports:
            parse_port_spec(spec)
        return self

    def port_ranges(self) -> list[tuple[int, int]]:
        return [parse_port_spec(spec) for spec in self.ports]


class FirewallDecl(BaseModel):
    """A VPC firewall rule.

    Lower priority numbers win. Rules with no target tags apply to every
    instance in the network.
    """

    name: str
    direction: Direction = Direction.INGRESS
    action: Action = Action.ALLOW
    matchers: list[ProtocolMatcher] = Field(min_length=1)
    source_ranges: list[str] = Field(default_factory=list)
    source_tags: list[str] = Field(default_factory=list)
    target_tags: list[str] = Field(default_factory=list)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0, le=MAX_PRIORITY)
    description: str = ""

    @field_validator("source_ranges")
    @classmethod
    def valid_ranges(cls, value: list[str]) -> list[str]:
        return [_check_cidr(v) for v in value]

    @model_validator(mode="after")
    def needs_source(self) -> "FirewallDecl":
        if not self.source_ranges and not self.source_tags:
            raise ValueError(f"ingress rule {self.name} needs source ranges or source tags")
        return self


class Topology(BaseModel):
    """Complete network declaration for one environment."""

    vpc_cidr: str
    network: NetworkDecl
    subnets: list[SubnetDecl]
    router: RouterDecl
    nat: NatDecl
    firewall_rules: list[FirewallDecl] = Field(default_factory=list)

    @field_validator("vpc_cidr")
    @classmethod
    def valid_cidr(cls, value: str) -> str:
        return _check_cidr(value)

    @model_validator(mode="after")
    def unique_identities(self) -> "Topology":
        keys = [s.key for s in self.subnets]
        if len(keys) != len(set(keys)):
            raise ValueError("duplicate subnet keys")
        names = [r.name for r in self.firewall_rules]
        if len(names) != len(set(names)):
            raise ValueError("duplicate firewall rule names")
        return self

    def subnet(self, key: str) -> SubnetDecl:
        for subnet in self.subnets:
            if subnet.key == key:
                return subnet
        raise KeyError(key)

    def rule(self, name: str) -> FirewallDecl:
        for rule in self.firewall_rules:
            if rule.name == name:
                return rule
        raise KeyError(name)
