import ipaddress
from dataclasses import dataclass
from enum import Enum

from src.model import ResourceHandle, Resources
from src.model.async_value import AsyncValue
from src.model.errors import ConfigurationError
from src.model.registry import register_resource

MYSQL_PORT = 3306


class RoutingMode(Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    MIXED = "mixed"


@dataclass(frozen=True)
class SubnetPlan:
    name: str
    cidr: str
    public: bool
    zone_index: int


@register_resource("vpc")
class NetworkTopology(Resources):
    """VPC mit öffentlichen und/oder privaten Subnetzen je Availability Zone"""

    output_keys = ("vpc_id", "public_subnet_ids", "private_subnet_ids")

    def __init__(
        self,
        name: str,
        cidr: str = "10.0.0.0/16",
        zone_count: int = 2,
        routing_mode: RoutingMode = RoutingMode.MIXED,
        nat_gateway: bool = True,
        subnet_prefix: int = 20
    ):
        try:
            self.network = ipaddress.ip_network(cidr)
        except ValueError as e:
            raise ConfigurationError(f"Invalid VPC CIDR '{cidr}': {e}", subject=name) from e
        if zone_count < 1:
            raise ConfigurationError(f"VPC '{name}' needs at least one availability zone", subject=name)
        if subnet_prefix <= self.network.prefixlen:
            raise ConfigurationError(
                f"Subnet prefix /{subnet_prefix} must be smaller than VPC {cidr}", subject=name
            )
        self.name = name
        self.cidr = str(self.network)
        self.zone_count = zone_count
        self.routing_mode = routing_mode
        # NAT only makes sense when private subnets need egress
        self.nat_gateway = nat_gateway and routing_mode is not RoutingMode.PUBLIC
        self.subnet_prefix = subnet_prefix
        self.subnets = self._plan_subnets()

    def _plan_subnets(self) -> list[SubnetPlan]:
        """Subnetze der Reihe nach aus dem VPC-CIDR schneiden: erst public, dann private"""
        tiers = []
        if self.routing_mode in (RoutingMode.PUBLIC, RoutingMode.MIXED):
            tiers.append(True)
        if self.routing_mode in (RoutingMode.PRIVATE, RoutingMode.MIXED):
            tiers.append(False)

        needed = len(tiers) * self.zone_count
        available = 2 ** (self.subnet_prefix - self.network.prefixlen)
        if needed > available:
            raise ConfigurationError(
                f"VPC {self.cidr} fits only {available} /{self.subnet_prefix} subnets, {needed} needed",
                subject=self.name
            )

        blocks = self.network.subnets(new_prefix=self.subnet_prefix)
        plan = []
        for public in tiers:
            for zone in range(self.zone_count):
                tier = "public" if public else "private"
                plan.append(SubnetPlan(
                    name=f"{self.name}-{tier}-{zone}",
                    cidr=str(next(blocks)),
                    public=public,
                    zone_index=zone
                ))
        return plan

    def get_resource_id(self) -> str:
        return self.name

    def properties(self) -> dict:
        return {
            "name": self.name,
            "cidr_block": self.cidr,
            "routing_mode": self.routing_mode.value,
            "nat_gateway": self.nat_gateway,
            "enable_dns_hostnames": True,
            "subnets": [
                {"name": s.name, "cidr_block": s.cidr, "public": s.public, "zone_index": s.zone_index}
                for s in self.subnets
            ],
        }

    def function_subnet_ids(self, handle: ResourceHandle) -> AsyncValue[list]:
        """Subnetze, in die Functions gelegt werden"""
        if self.routing_mode is RoutingMode.PRIVATE:
            return handle.output("private_subnet_ids")
        return handle.output("public_subnet_ids")

    def database_subnet_ids(self, handle: ResourceHandle) -> AsyncValue[list]:
        if self.routing_mode is RoutingMode.PUBLIC:
            return handle.output("public_subnet_ids")
        return handle.output("private_subnet_ids")

    def __repr__(self) -> str:
        return f"NetworkTopology(name='{self.name}', cidr='{self.cidr}', mode='{self.routing_mode.value}')"


@register_resource("security_group")
class SecurityBoundary(Resources):
    """Security Group für den Datenbankzugriff innerhalb der VPC"""

    output_keys = ("security_group_id",)

    def __init__(self, name: str, network: NetworkTopology, vpc_id, port: int = MYSQL_PORT):
        self.name = name
        self.network = network
        self.vpc_id = vpc_id
        self.port = port

    def get_resource_id(self) -> str:
        return self.name

    def properties(self) -> dict:
        return {
            "name": self.name,
            "vpc_id": self.vpc_id,
            "ingress": [{
                "protocol": "tcp",
                "from_port": self.port,
                "to_port": self.port,
                "cidr_blocks": [self.network.cidr],
            }],
            "egress": [{
                "protocol": "-1",
                "from_port": 0,
                "to_port": 0,
                "cidr_blocks": ["0.0.0.0/0"],
            }],
        }

    def __repr__(self) -> str:
        return f"SecurityBoundary(name='{self.name}', port={self.port})"
