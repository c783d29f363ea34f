"""
Network provider — VPC, subnet tiers and the data-tier security groups.

Topology (when a new VPC is created):
  - 10.0.0.0/16, 2 Availability Zones, 1 NAT Gateway shared by both AZs
  - Private subnets  (/24) → ECS tasks, outbound through the NAT Gateway
  - Public subnets   (/24) → ALB only
  - Isolated subnets (/28) → RDS (no internet access)

When VPC_ID is set the existing VPC is looked up instead and treated as
read-only: nothing here changes its subnet layout.

Data-tier security groups (RDS, Redis) accept their port only from the
private subnets' CIDR blocks, never from the public tier.
"""
import logging
from typing import List

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from stacks.config import VPC_ID_PATTERN, RedashConfig
from stacks.errors import NetworkLookupError
from stacks.naming import resource_id

logger = logging.getLogger(__name__)

VPC_CIDR = "10.0.0.0/16"
MAX_AZS = 2
NAT_GATEWAYS = 1


def resolve_network(scope: Construct, config: RedashConfig) -> ec2.IVpc:
    if config.vpc_id:
        return _lookup_vpc(scope, config)
    return _create_vpc(scope, config)


def _lookup_vpc(scope: Construct, config: RedashConfig) -> ec2.IVpc:
    # A well-formed id that does not exist is reported by the CDK context
    # provider at synth time and aborts synthesis.
    if not VPC_ID_PATTERN.match(config.vpc_id):
        raise NetworkLookupError(
            f"Cannot look up VPC {config.vpc_id!r} in {config.region}: not a VPC identifier."
        )
    logger.info(f"[network] looking up existing VPC {config.vpc_id} in {config.region}")
    return ec2.Vpc.from_lookup(
        scope,
        "VPC-lookup",
        vpc_id=config.vpc_id,
        region=config.region,
    )


def _create_vpc(scope: Construct, config: RedashConfig) -> ec2.Vpc:
    vpc_name = resource_id(config, "vpc")
    logger.info(f"[network] creating VPC {vpc_name} ({VPC_CIDR})")
    return ec2.Vpc(
        scope,
        vpc_name,
        vpc_name=vpc_name,
        ip_addresses=ec2.IpAddresses.cidr(VPC_CIDR),
        max_azs=MAX_AZS,
        nat_gateways=NAT_GATEWAYS,
        subnet_configuration=[
            ec2.SubnetConfiguration(
                name="private-subnet-1",
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                cidr_mask=24,
            ),
            ec2.SubnetConfiguration(
                name="public-subnet-1",
                subnet_type=ec2.SubnetType.PUBLIC,
                cidr_mask=24,
            ),
            ec2.SubnetConfiguration(
                name="isolated-subnet-1",
                subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                cidr_mask=28,
            ),
        ],
    )


def private_subnet_cidrs(vpc: ec2.IVpc) -> List[str]:
    return [subnet.ipv4_cidr_block for subnet in vpc.private_subnets]


def make_private_ingress_security_group(
    scope: Construct,
    config: RedashConfig,
    vpc: ec2.IVpc,
    role: str,
    port: int,
    description: str,
) -> ec2.SecurityGroup:
    """
    Security group that opens `port` to each private subnet CIDR and nothing else.

    Outbound traffic is unrestricted.
    """
    group_name = resource_id(config, "ec2", f"{role}-sg")
    security_group = ec2.SecurityGroup(
        scope,
        group_name,
        security_group_name=group_name,
        description=description,
        allow_all_outbound=True,
        vpc=vpc,
    )
    for cidr in private_subnet_cidrs(vpc):
        security_group.add_ingress_rule(ec2.Peer.ipv4(cidr), ec2.Port.tcp(port))
    logger.debug(f"[network] {group_name}: tcp/{port} from {len(vpc.private_subnets)} private subnet(s)")
    return security_group
